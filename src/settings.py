"""
This module contains the configuration settings for the vault daemon.
It defines paths, the mounting executable contract, supervisor timings and logging options.
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
OVERRIDES_JSON_PATH = BASE_DIR / "overrides.json"

#* --- Application Identity ---
APP_NAME = "vaultd"
# Optional explicit base data directory. When unset the platform default is used.
DATA_DIR_OVERRIDE = os.getenv("VAULTD_DATA_DIR", "")

#* --- Data File Names (relative to the resolved data directory) ---
VAULT_DB_FILENAME = "vaults.db"
LOGS_DIRNAME = "logs"
LOG_DB_FILENAME = "app_logs.db"

#* --- Mounting Executable ---
MOUNT_EXECUTABLE = os.getenv("VAULTD_MOUNT_EXECUTABLE", "rencfs")
MOUNT_PASSWORD_ENV_VAR = "ENCRYPTED_FS_PASSWORD"
# Per-vault passphrase lookup, e.g. VAULTD_VAULT_3_PASSWORD
VAULT_PASSWORD_ENV_TEMPLATE = "VAULTD_VAULT_{id}_PASSWORD"

#* --- Supervisor Settings ---
SUPERVISOR_SLEEP_INTERVAL = 5   # seconds between health checks of unlocked vaults
UNLOCK_WARMUP_SECONDS = 8
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing
EXTERNAL_COMMAND_TIMEOUT = 10   # seconds for umount/ps/kill
DEFUNCT_TEXT_CHECK_ENABLED = os.getenv("VAULTD_DEFUNCT_TEXT_CHECK", "True").lower() in ('true', '1', 't')

#* --- Application variables ---
VERBOSE_LOGGING = False

#* --- MODIFIABLE SETTINGS (Changeable at runtime via 'config' command) ---
MODIFIABLE_SETTINGS = {
    # Supervisor
    "MOUNT_EXECUTABLE", "SUPERVISOR_SLEEP_INTERVAL", "UNLOCK_WARMUP_SECONDS", "GRACEFUL_SHUTDOWN_TIMEOUT",
    "EXTERNAL_COMMAND_TIMEOUT", "DEFUNCT_TEXT_CHECK_ENABLED",
    # Logging
    "LOG_BUFFER_SIZE", "LOG_BUFFER_FLUSH_INTERVAL",
    "MAX_LOG_DB_SIZE_MB", "LOG_DB_SIZE_CHECK_INTERVAL_SECONDS", "LOG_HISTORY_COUNT",
}

#* --- Default Values for Modifiable Logging Settings ---
LOG_BUFFER_SIZE = 100
LOG_BUFFER_FLUSH_INTERVAL = 10
MAX_LOG_DB_SIZE_MB = 100
LOG_DB_SIZE_CHECK_INTERVAL_SECONDS = 12 * 3600 # 12 hours
LOG_HISTORY_COUNT = 50

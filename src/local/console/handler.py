import logging
from typing import Callable, List, Optional

import psutil

from src.local import effective_settings as config
from src.local.database import LogDBManager, VaultStoreError, DuplicateVaultNameError, VaultNotFoundError
from src.local.errors import VaultHandlerError
from src.local.supervisor import VaultService
from src.local.console.validation import validate_data_dir, validate_mount_point, validate_name

log = logging.getLogger(__name__)


def _parse_vault_id(args: List[str], usage: str, min_args: int = 1) -> Optional[int]:
    """Parses the leading vault id argument, printing usage when it is missing or malformed."""
    if len(args) < min_args:
        print(f"Usage: {usage}")
        return None
    try:
        return int(args[0])
    except ValueError:
        print(f"Invalid vault id '{args[0]}'.")
        return None


def _notify(action: Callable[[], None], success_message: str) -> bool:
    """
    Runs a vault operation and prints a one-line outcome. Failures are not retried.

    :return: True if the operation succeeded.
    """
    try:
        action()
    except VaultHandlerError as e:
        print(f"ERROR: {e}")
        return False
    print(success_message)
    return True


#* --- Vault listing ---
def display_vaults(service: VaultService) -> None:
    """Prints all vaults with their persisted state."""
    vaults = service.store.list_vaults()
    if not vaults:
        print("\nNo vaults defined. Use 'add' to create one.\n")
        return

    print("\n--- Vaults ---")
    for vault in vaults:
        state = "LOCKED" if vault.is_locked else "UNLOCKED"
        print(f"  [{vault.id:>3}] {vault.name:<20} {state:<9} mount: {vault.mount_point}  data: {vault.data_dir}")
    print("-" * 14 + "\n")


def display_status(service: VaultService) -> None:
    """Checks and displays the mounting process of every vault, including resource usage."""
    report = service.status()
    if not report:
        print("\nNo vaults defined.\n")
        return

    print("\n--- Vault Status ---")
    total_cpu = 0.0
    total_mem = 0
    for entry in report:
        label = f"{entry['name']} ({entry['id']})"
        pid = entry["pid"]
        if pid is None:
            state = "LOCKED" if entry["locked"] else "UNLOCKED (no process)"
            print(f"  - {label:<32} : {state}")
            continue
        try:
            p = psutil.Process(pid)
            cpu = p.cpu_percent(interval=0.1)
            mem = p.memory_info().rss
            total_cpu += cpu
            total_mem += mem
            print(f"  - {label:<32} : PID {pid:<8} | Status: {entry['process_status'].upper()} | CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB")
        except psutil.NoSuchProcess:
            print(f"  - {label:<32} : PID {pid:<8} | Status: STOPPED")
        except psutil.AccessDenied:
            print(f"  - {label:<32} : PID {pid:<8} | Status: RUNNING (Access Denied)")

    print(f"\nTOTAL CPU: {total_cpu:.1f}%  |  TOTAL MEMORY: {total_mem/1024/1024:.1f} MB")
    print("-" * 20 + "\n")


#* --- Vault records ---
def handle_add_command(service: VaultService, args: List[str]) -> None:
    """Creates a new, locked vault: add NAME MOUNT_POINT DATA_DIR."""
    if len(args) < 3:
        print("Usage: add <name> <mount_point> <data_dir>")
        return
    try:
        name = validate_name(args[0])
        mount_point = validate_mount_point(args[1])
        data_dir = validate_data_dir(args[2])
        vault_id = service.store.insert(name, mount_point, data_dir)
    except ValueError as e:
        print(f"ERROR: {e}")
        return
    except DuplicateVaultNameError:
        print(f"ERROR: another vault named {args[0].strip()} exists")
        return
    except VaultStoreError as e:
        print(f"ERROR: failed to save: {e}")
        return
    print(f"Vault {name} saved with id {vault_id}.")


def handle_rename_command(service: VaultService, args: List[str]) -> None:
    vault_id = _parse_vault_id(args, "rename <id> <name>", min_args=2)
    if vault_id is None:
        return
    try:
        name = validate_name(" ".join(args[1:]))
        service.store.update(vault_id, name=name)
    except ValueError as e:
        print(f"ERROR: {e}")
        return
    except DuplicateVaultNameError as e:
        print(f"ERROR: {e}")
        return
    except VaultStoreError as e:
        print(f"ERROR: failed to rename: {e}")
        return
    print(f"Vault {vault_id} renamed to {name}.")


def handle_remove_command(service: VaultService, args: List[str]) -> None:
    """Deletes a locked vault record. Unlocked vaults must be locked first."""
    vault_id = _parse_vault_id(args, "remove <id>")
    if vault_id is None:
        return
    try:
        service.forget(vault_id)
        service.store.delete(vault_id)
    except ValueError as e:
        print(f"ERROR: {e}")
        return
    except VaultStoreError as e:
        print(f"ERROR: failed to delete: {e}")
        return
    print(f"Vault {vault_id} deleted.")


#* --- Vault operations ---
def handle_unlock_command(service: VaultService, args: List[str]) -> None:
    vault_id = _parse_vault_id(args, "unlock <id>")
    if vault_id is None:
        return
    if not service.is_unlocked(vault_id):
        print(f"Please wait, it takes up to {config.UNLOCK_WARMUP_SECONDS + 2} seconds to unlock the vault...")
    _notify(lambda: service.unlock(vault_id), "vault unlocked")


def handle_lock_command(service: VaultService, args: List[str]) -> None:
    vault_id = _parse_vault_id(args, "lock <id>")
    if vault_id is None:
        return
    _notify(lambda: service.lock(vault_id), "vault locked")


def handle_mount_point_command(service: VaultService, args: List[str]) -> None:
    vault_id = _parse_vault_id(args, "mount-point <id> <path>", min_args=2)
    if vault_id is None:
        return
    try:
        current = service.store.get(vault_id).mount_point
        mount_point = validate_mount_point(args[1], current)
    except VaultNotFoundError as e:
        print(f"ERROR: {e}")
        return
    except ValueError as e:
        print(f"ERROR: {e}")
        return
    if service.is_unlocked(vault_id):
        print(f"Please wait, it takes up to {config.UNLOCK_WARMUP_SECONDS + 2} seconds to change mount point...")
    _notify(lambda: service.change_mount_point(vault_id, mount_point), "mount point changed")


def handle_data_dir_command(service: VaultService, args: List[str]) -> None:
    vault_id = _parse_vault_id(args, "data-dir <id> <path>", min_args=2)
    if vault_id is None:
        return
    try:
        current = service.store.get(vault_id).data_dir
        data_dir = validate_data_dir(args[1], current)
    except VaultNotFoundError as e:
        print(f"ERROR: {e}")
        return
    except ValueError as e:
        print(f"ERROR: {e}")
        return
    if service.is_unlocked(vault_id):
        print(f"Please wait, it takes up to {config.UNLOCK_WARMUP_SECONDS + 2} seconds to change data dir...")
    _notify(lambda: service.change_data_dir(vault_id, data_dir), "data dir changed")


#* --- Configuration ---
def _config_show() -> None:
    """Displays the current values of all modifiable settings."""
    print("\n--- Current Application Configuration ---")
    for key in sorted(config.MODIFIABLE_SETTINGS):
        print(f"  {key} = {getattr(config, key, 'N/A')}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("Supervisor settings apply to vaults used for the first time after a restart.")
    print("---------------------------------------\n")


def _config_set(args: List[str]) -> None:
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return

    key, value_str = args[0].upper(), " ".join(args[1:])
    try:
        config.update_setting(key, value_str)
    except KeyError:
        print(f"Error: '{key}' is not a modifiable setting.")
        return
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"Setting '{key}' updated to '{getattr(config, key)}'.")


def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Change and persist a setting.")
    print("  config help                - Show this help message.")


def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands for the 'config' command-line interface.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")


#* --- Logs ---
def handle_logs_command(service: VaultService) -> None:
    """Prints the most recent application log entries."""
    for handler in logging.getLogger().handlers:
        handler.flush()
    log_db = LogDBManager(service.logs_dir / config.LOG_DB_FILENAME)
    entries = log_db.fetch_last_entries(config.LOG_HISTORY_COUNT, config.VERBOSE_LOGGING)
    print(f"\n--- Displaying last {len(entries)} log entries ---")
    for log_entry in entries:
        print(log_entry.message)
    print()


def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    root_logger = logging.getLogger()
    found_handler = False
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(new_level)
            found_handler = True
            break

    status = "ON" if config.VERBOSE_LOGGING else "OFF"
    if found_handler:
        print(f"Verbose console logging is now {status}.")
        log.debug("Debug logging test: This message should only appear when verbose is ON.")
    else:
        print("Could not find console handler to modify level.")


def print_help() -> None:
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  list                       - List all vaults.")
    print("  status                     - Check and show the mounting process of every vault.")
    print("  add <name> <mount> <data>  - Create a new vault (mount point and data dir must be empty).")
    print("  rename <id> <name>         - Rename a vault.")
    print("  remove <id>                - Delete a locked vault.")
    print("  unlock <id>                - Mount a vault.")
    print("  lock <id>                  - Unmount a vault.")
    print("  mount-point <id> <path>    - Change the mount point of a vault.")
    print("  data-dir <id> <path>       - Change the data directory of a vault.")
    print("  config <cmd>               - Manage configuration. Use 'config help' for more details.")
    print("  logs                       - Show the most recent log entries.")
    print("  verbose                    - Toggle detailed DEBUG log output in the console.")
    print("  exit                       - Lock all vaults and exit the console.")
    print()

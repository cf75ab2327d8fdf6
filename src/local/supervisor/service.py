import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.local.config import MergedSettings, effective_settings, resolve_data_dir
from src.local.database import VaultDBManager
from src.local.errors import VaultHandlerError
from src.local.supervisor.controller import ProcessController
from src.local.supervisor.platform import get_platform
from src.local.supervisor.probe import ProcessProbe
from src.local.supervisor.secrets import EnvironmentSecretProvider
from src.local.supervisor.supervisor import VaultSupervisor

log = logging.getLogger(__name__)


class VaultService:
    """
    Entry point for callers: routes vault operations to one `VaultSupervisor` per vault id.

    Supervisors are created on first use and kept for the lifetime of the service, so
    the process handle a supervisor owns is never duplicated for the same vault.
    """

    def __init__(self, config: MergedSettings = effective_settings, data_dir: Optional[Path] = None) -> None:
        """
        Resolves the data directory and opens the vault store.

        :param config: The settings to read paths and timings from.
        :param data_dir: Explicit base data directory; resolved from the platform when omitted.
        :raises ConfigurationError: If the base data directory cannot be resolved.
        """
        self.config = config
        self.data_dir = data_dir or resolve_data_dir(config.DATA_DIR_OVERRIDE, config.APP_NAME)
        self.logs_dir = self.data_dir / config.LOGS_DIRNAME
        self.store = VaultDBManager(self.data_dir / config.VAULT_DB_FILENAME)
        self.store.initialize_database()

        platform = get_platform(config.EXTERNAL_COMMAND_TIMEOUT)
        self.probe = ProcessProbe(platform, text_check_enabled=config.DEFUNCT_TEXT_CHECK_ENABLED)
        self.controller = ProcessController(platform, graceful_timeout=config.GRACEFUL_SHUTDOWN_TIMEOUT)
        self.secrets = EnvironmentSecretProvider(config.VAULT_PASSWORD_ENV_TEMPLATE)

        self.supervisors: Dict[int, VaultSupervisor] = {}
        self.registry_lock = threading.Lock()
        self.shutdown_signal_received = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None
        log.info(f"Vault service ready (data dir: {self.data_dir}, platform: {platform.name})")

    def supervisor(self, vault_id: int) -> VaultSupervisor:
        """Returns the supervisor for a vault, creating it on first use."""
        with self.registry_lock:
            supervisor = self.supervisors.get(vault_id)
            if supervisor is None:
                supervisor = VaultSupervisor(
                    vault_id,
                    self.store,
                    self.probe,
                    self.controller,
                    self.secrets,
                    self.logs_dir,
                    self.config.MOUNT_EXECUTABLE,
                    password_env_var=self.config.MOUNT_PASSWORD_ENV_VAR,
                    warmup_seconds=self.config.UNLOCK_WARMUP_SECONDS,
                )
                self.supervisors[vault_id] = supervisor
            return supervisor

    def lock(self, vault_id: int) -> None:
        self.supervisor(vault_id).lock()

    def unlock(self, vault_id: int) -> None:
        self.supervisor(vault_id).unlock()

    def change_mount_point(self, vault_id: int, mount_point: str) -> None:
        self.supervisor(vault_id).change_mount_point(mount_point)

    def change_data_dir(self, vault_id: int, data_dir: str) -> None:
        self.supervisor(vault_id).change_data_dir(data_dir)

    def is_unlocked(self, vault_id: int) -> bool:
        with self.registry_lock:
            supervisor = self.supervisors.get(vault_id)
        return supervisor is not None and supervisor.is_unlocked

    def forget(self, vault_id: int) -> None:
        """
        Drops the supervisor of a deleted vault.

        :raises ValueError: If the vault still has a tracked process.
        """
        with self.registry_lock:
            supervisor = self.supervisors.get(vault_id)
            if supervisor is not None and supervisor.is_unlocked:
                raise ValueError(f"Vault {vault_id} is unlocked; lock it first.")
            self.supervisors.pop(vault_id, None)

    def status(self) -> List[Dict[str, Any]]:
        """
        Checks the health of every tracked process and reports all vaults.

        :return: One dict per vault with its record fields, the tracked PID and process status.
        """
        report = []
        for vault in self.store.list_vaults():
            supervisor = self.supervisor(vault.id)
            process_status = supervisor.check_health()
            report.append({
                **vault._asdict(),
                "pid": supervisor.pid,
                "process_status": process_status.value if process_status else None,
            })
        return report

    def lock_all(self) -> None:
        """Locks every vault that still has a tracked process, carrying on past failures."""
        with self.registry_lock:
            supervisors = [s for s in self.supervisors.values() if s.is_unlocked]
        if not supervisors:
            log.info("No unlocked vaults to lock.")
            return

        log.info(f"Locking {len(supervisors)} unlocked vault(s)...")
        for supervisor in supervisors:
            try:
                supervisor.lock()
            except VaultHandlerError as e:
                log.error(f"Failed to lock vault {supervisor.id} during shutdown: {e}")

    #* --- Monitoring ---
    def monitor_vaults(self) -> None:
        """Runs one health check over all tracked processes."""
        with self.registry_lock:
            supervisors = [s for s in self.supervisors.values() if s.is_unlocked]
        for supervisor in supervisors:
            supervisor.check_health()

    def _monitor_loop(self, interval: float) -> None:
        log.info("Vault monitor started.")
        while not self.shutdown_signal_received.wait(interval):
            try:
                self.monitor_vaults()
            except Exception as e:
                log.critical(f"Critical error in vault monitor: {e}", exc_info=True)
        log.info("Vault monitor stopped.")

    def start_monitor(self, interval: float) -> None:
        """Starts the background health monitor thread."""
        if self._monitor_thread and self._monitor_thread.is_alive():
            return
        self.shutdown_signal_received.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop, args=(interval,), daemon=True, name="VaultMonitorThread"
        )
        self._monitor_thread.start()

    def shutdown(self) -> None:
        """Stops the monitor and locks all vaults."""
        self.shutdown_signal_received.set()
        if self._monitor_thread and self._monitor_thread.is_alive():
            self._monitor_thread.join()
        self.lock_all()

import os
import time
import sqlite3
import logging
import subprocess
from pathlib import Path
from typing import Optional, Type

from src.local.database import VaultDBManager, VaultStoreError
from src.local.errors import (
    CannotChangeDataDir, CannotChangeMountPoint, CannotLockVault, CannotUnlockVault,
    ProcessControlError, SecretUnavailableError, SpawnError, VaultHandlerError,
)
from src.local.supervisor.controller import ProcessController
from src.local.supervisor.probe import ProcessProbe, ProcessStatus
from src.local.supervisor.secrets import EnvironmentSecretProvider

log = logging.getLogger(__name__)

STORE_ERRORS = (VaultStoreError, sqlite3.Error)


class VaultSupervisor:
    """
    Owns the mounting process of one vault and keeps the persisted ``locked`` flag in step with it.

    ``locked`` records what was requested (lock/unlock), not what was observed: `lock()`
    writes it before looking at the process, and a process that dies on its own leaves it
    untouched.

    Every operation holds the store's exclusive access for its whole duration, including
    the unlock warm-up wait and the OS utility calls. That serializes all supervisors of
    the store, which is also what keeps two operations on the same vault from interleaving.
    """

    def __init__(
        self,
        vault_id: int,
        store: VaultDBManager,
        probe: ProcessProbe,
        controller: ProcessController,
        secrets: EnvironmentSecretProvider,
        logs_dir: Path,
        executable: str,
        password_env_var: str = "ENCRYPTED_FS_PASSWORD",
        warmup_seconds: float = 8,
    ) -> None:
        self.id = vault_id
        self.store = store
        self.probe = probe
        self.controller = controller
        self.secrets = secrets
        self.logs_dir = logs_dir
        self.executable = executable
        self.password_env_var = password_env_var
        self.warmup_seconds = warmup_seconds
        self.child: Optional[subprocess.Popen] = None

    @property
    def is_unlocked(self) -> bool:
        return self.child is not None

    @property
    def pid(self) -> Optional[int]:
        return self.child.pid if self.child is not None else None

    #* --- Lock ---
    def lock(self) -> None:
        """
        Marks the vault locked and stops its mounting process, if any.

        :raises CannotLockVault: If the flag cannot be written, the process cannot be
            terminated, or the post-termination unmount cannot be performed.
        """
        log.info(f"VaultSupervisor {self.id} received lock request")
        with self.store.exclusive():
            self._lock()

    def _lock(self) -> None:
        try:
            self.store.update(self.id, locked=True)
        except STORE_ERRORS as e:
            # The process, if any, keeps running.
            log.error(f"Cannot update vault {self.id} state: {e}")
            raise CannotLockVault(self.id) from e

        if self.child is None:
            log.info(f"VaultSupervisor {self.id} already locked")
            return

        child, self.child = self.child, None
        log.info(f"VaultSupervisor {self.id} terminating child process {child.pid} to lock the vault")
        try:
            self.controller.terminate(child)
        except ProcessControlError as e:
            log.error(f"Error terminating child process of vault {self.id}: {e}")
            raise CannotLockVault(self.id) from e

        # A terminated mounting process does not reliably release its mount.
        if not self.controller.platform.supports_fallbacks:
            return
        try:
            vault = self.store.get(self.id)
        except STORE_ERRORS as e:
            log.error(f"Cannot get vault {self.id}: {e}")
            raise CannotLockVault(self.id) from e
        try:
            self.controller.force_unmount(vault.mount_point)
        except ProcessControlError as e:
            log.error(f"Cannot unmount vault {self.id} at '{vault.mount_point}': {e}")
            raise CannotLockVault(self.id) from e

    #* --- Unlock ---
    def unlock(self) -> None:
        """
        Spawns the mounting executable for the vault, checks it survived the warm-up
        interval, then marks the vault unlocked.

        :raises CannotUnlockVault: If the record or passphrase cannot be read, the process
            cannot be spawned, is gone or defunct after the warm-up, or the final flag
            update fails (in which case the process stays running and tracked).
        """
        log.info(f"VaultSupervisor {self.id} received unlock request")
        if self.child is not None:
            log.info(f"VaultSupervisor {self.id} already unlocked")
            return
        with self.store.exclusive():
            self._unlock()

    def _log_path(self, suffix: str) -> Path:
        return self.logs_dir / f"vault_{self.id}.{suffix}"

    def _unlock(self) -> None:
        # Another unlock may have won the race for the exclusive access.
        if self.child is not None:
            log.info(f"VaultSupervisor {self.id} already unlocked")
            return

        try:
            vault = self.store.get(self.id)
        except STORE_ERRORS as e:
            log.error(f"Cannot get vault {self.id}: {e}")
            raise CannotUnlockVault(self.id) from e

        try:
            password = self.secrets.get_password(self.id)
        except SecretUnavailableError as e:
            log.error(str(e))
            raise CannotUnlockVault(self.id) from e

        env = os.environ.copy()
        env[self.password_env_var] = password
        args = [
            "--mount-point", vault.mount_point,
            "--data-dir", vault.data_dir,
            "--umount-on-start",
        ]
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            with self._log_path("out").open("a") as stdout, self._log_path("err").open("a") as stderr:
                child = self.controller.spawn(self.executable, args, env, stdout, stderr)
        except OSError as e:
            log.error(f"Cannot create log files for vault {self.id}: {e}")
            raise CannotUnlockVault(self.id) from e
        except SpawnError as e:
            log.error(f"Cannot start process for vault {self.id}: {e}")
            raise CannotUnlockVault(self.id) from e

        # Give the executable time to initialize and mount before judging it.
        time.sleep(self.warmup_seconds)

        status = self.probe.status(child.pid)
        if status is ProcessStatus.NOT_FOUND:
            log.error(f"Process {child.pid} of vault {self.id} not found after warm-up")
            self.controller.reap(child)
            raise CannotUnlockVault(self.id)

        if self.probe.is_defunct(status, child.pid):
            self._discard_defunct(child)
            raise CannotUnlockVault(self.id)

        self.child = child
        try:
            self.store.update(self.id, locked=False)
        except STORE_ERRORS as e:
            # The process stays running and tracked; the persisted flag still says locked.
            log.error(f"Cannot update vault {self.id} state: {e}")
            raise CannotUnlockVault(self.id) from e
        log.info(f"VaultSupervisor {self.id} unlocked, mounted at '{vault.mount_point}' by PID {child.pid}")

    def _discard_defunct(self, child: subprocess.Popen) -> None:
        log.warning(f"Process {child.pid} of vault {self.id} is defunct, killing it")
        if not self.controller.platform.supports_fallbacks:
            # TODO: fall back to "taskkill /F /PID" on Windows.
            log.warning(f"No forced kill available on this platform; process {child.pid} is left as is")
            return
        try:
            if self.controller.force_kill(child.pid):
                self.controller.reap(child)
        except ProcessControlError as e:
            log.error(f"Cannot kill defunct process {child.pid}: {e}")

    #* --- Field changes ---
    def change_mount_point(self, mount_point: str) -> None:
        """
        Persists a new mount point, restarting the mounting process around it if the vault is unlocked.

        :raises CannotChangeMountPoint: On any failure, including the embedded lock/unlock.
        """
        self._change_field("mount_point", mount_point, CannotChangeMountPoint)

    def change_data_dir(self, data_dir: str) -> None:
        """
        Persists a new data directory, restarting the mounting process around it if the vault is unlocked.

        :raises CannotChangeDataDir: On any failure, including the embedded lock/unlock.
        """
        self._change_field("data_dir", data_dir, CannotChangeDataDir)

    def _change_field(self, field: str, value: str, error_kind: Type[VaultHandlerError]) -> None:
        log.info(f"VaultSupervisor {self.id} received change request for {field}")
        with self.store.exclusive():
            was_unlocked = self.child is not None
            if was_unlocked:
                try:
                    self._lock()
                except CannotLockVault as e:
                    raise error_kind(self.id) from e

            try:
                self.store.update(self.id, **{field: value})
            except (ValueError,) + STORE_ERRORS as e:
                log.error(f"Cannot update {field} of vault {self.id}: {e}")
                raise error_kind(self.id) from e

            if was_unlocked:
                # No rollback: the new value stays persisted even if the restart fails.
                try:
                    self._unlock()
                except CannotUnlockVault as e:
                    raise error_kind(self.id) from e

    #* --- Health ---
    def check_health(self) -> Optional[ProcessStatus]:
        """
        Drops the tracked process if it exited or became defunct since the unlock.

        :return: The probed status of the tracked process, or None if nothing is tracked.
        """
        with self.store.exclusive():
            if self.child is None:
                return None
            child = self.child
            if child.poll() is not None:
                log.warning(f"Process {child.pid} of vault {self.id} exited with code {child.returncode}")
                self.child = None
                return ProcessStatus.DEAD
            status = self.probe.status(child.pid)
            if status is ProcessStatus.NOT_FOUND:
                log.warning(f"Process {child.pid} of vault {self.id} disappeared; no longer tracking it")
                self.child = None
                self.controller.reap(child)
            elif self.probe.is_defunct(status, child.pid):
                self.child = None
                self._discard_defunct(child)
            return status

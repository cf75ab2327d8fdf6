"""
Platform capabilities for the external OS utilities the supervisor falls back on.

The platform is chosen once by `get_platform()`. POSIX-like systems get `umount`, `ps`
and `kill`; anything else gets `UnsupportedPlatform`, whose fallbacks report that they
did nothing and leave the supervisor with signal-only termination.
"""
import os
import logging
import subprocess
from typing import List

from src.local.errors import ProcessControlError

log = logging.getLogger(__name__)

DEFUNCT_MARKER = "defunct"


class UnsupportedPlatform:
    """Platform without the umount/ps/kill fallbacks. Every call is a logged no-op."""

    name = "unsupported"
    supports_fallbacks = False

    def __init__(self, command_timeout: float = 10) -> None:
        self.command_timeout = command_timeout

    def unmount(self, path: str) -> bool:
        log.debug(f"Forced unmount of '{path}' is not supported on this platform.")
        return False

    def list_process(self, pid: int) -> str:
        log.debug(f"Process listing for PID {pid} is not supported on this platform.")
        return ""

    def kill(self, pid: int) -> bool:
        log.debug(f"Forced kill of PID {pid} is not supported on this platform.")
        return False


class PosixPlatform(UnsupportedPlatform):
    """POSIX-like platform that shells out to umount, ps and kill."""

    name = "posix"
    supports_fallbacks = True

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """
        Runs an OS utility synchronously and captures its output.

        :raises ProcessControlError: If the utility cannot be executed or times out.
        """
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=self.command_timeout, check=False)
        except (OSError, subprocess.SubprocessError) as e:
            raise ProcessControlError(f"Cannot run '{' '.join(cmd)}': {e}") from e

    def unmount(self, path: str) -> bool:
        result = self._run(["umount", path])
        if result.returncode != 0:
            # Commonly "not mounted" once the mounting executable cleaned up after itself.
            log.warning(f"umount '{path}' exited with {result.returncode}: {result.stderr.strip()}")
            return False
        log.info(f"Unmounted '{path}'.")
        return True

    def list_process(self, pid: int) -> str:
        return self._run(["ps", "-f", str(pid)]).stdout

    def kill(self, pid: int) -> bool:
        result = self._run(["kill", "-KILL", str(pid)])
        if result.returncode != 0:
            log.warning(f"kill -KILL {pid} exited with {result.returncode}: {result.stderr.strip()}")
            return False
        log.info(f"Sent SIGKILL to PID {pid}.")
        return True


def get_platform(command_timeout: float = 10) -> UnsupportedPlatform:
    """Returns the fallback capabilities for the running OS."""
    if os.name == "posix":
        return PosixPlatform(command_timeout)
    return UnsupportedPlatform(command_timeout)

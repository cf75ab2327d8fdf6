import sys
import logging
import subprocess
from pathlib import Path
from typing import IO, Any, Dict, List, Mapping, Optional

from src.local.errors import ProcessControlError, SpawnError
from src.local.supervisor.platform import UnsupportedPlatform, get_platform

log = logging.getLogger(__name__)


def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    if sys.platform == "win32" and not base_path.suffix:
        return base_path.with_suffix(".exe")
    return base_path


def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


class ProcessController:
    """
    Spawns and stops the mounting executable and drives the OS fallbacks.

    Every method blocks; callers run them from worker threads, never from an event loop.
    """

    def __init__(self, platform: Optional[UnsupportedPlatform] = None, graceful_timeout: float = 10) -> None:
        self.platform = platform or get_platform()
        self.graceful_timeout = graceful_timeout

    def spawn(self, executable: str, args: List[str], env: Mapping[str, str],
              stdout: IO, stderr: IO) -> subprocess.Popen:
        """
        Starts the executable with output redirected to the given files.

        :param executable: Path or name of the program.
        :param args: Arguments following the program.
        :param env: The complete environment for the child.
        :param stdout: Open, writable file for the child's standard output.
        :param stderr: Open, writable file for the child's standard error.
        :return: The Popen handle of the child.
        :raises SpawnError: If the program cannot be started.
        """
        cmd = [str(get_executable_path(Path(executable)))] + list(args)
        try:
            proc = subprocess.Popen(
                cmd, env=dict(env), stdout=stdout, stderr=stderr, stdin=subprocess.DEVNULL,
                **_get_popen_creation_flags()
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise SpawnError(f"Cannot start process '{cmd[0]}': {e}") from e
        log.info(f"Started '{cmd[0]}' with PID: {proc.pid}")
        return proc

    def terminate(self, handle: subprocess.Popen) -> None:
        """
        Stops a child with SIGTERM, escalating to kill after the graceful timeout.

        :raises ProcessControlError: If a signal cannot be delivered or the child survives the kill.
        """
        if handle.poll() is not None:
            log.info(f"Process {handle.pid} already exited with code {handle.returncode}.")
            return
        try:
            log.debug(f"Sending SIGTERM to PID {handle.pid}")
            handle.terminate()
            try:
                handle.wait(timeout=self.graceful_timeout)
                return
            except subprocess.TimeoutExpired:
                log.warning(f"Process {handle.pid} did not terminate gracefully. Killing it.")
            handle.kill()
            handle.wait(timeout=self.graceful_timeout)
        except ProcessLookupError:
            handle.poll()
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProcessControlError(f"Cannot terminate process {handle.pid}: {e}") from e

    def reap(self, handle: subprocess.Popen) -> None:
        """Collects the exit status of a child so it does not linger as a zombie."""
        try:
            handle.wait(timeout=self.graceful_timeout)
        except subprocess.TimeoutExpired:
            log.warning(f"Process {handle.pid} has not exited yet; leaving it unreaped.")

    def force_unmount(self, path: str) -> bool:
        """
        Unmounts ``path`` with the OS utility. Returns False when nothing was unmounted
        or the platform has no such utility.

        :raises ProcessControlError: If the utility cannot be run.
        """
        return self.platform.unmount(path)

    def force_kill(self, pid: int) -> bool:
        """
        Sends SIGKILL to ``pid`` with the OS utility, which also ends stopped processes.
        Returns False when the platform has no such utility.

        :raises ProcessControlError: If the utility cannot be run.
        """
        return self.platform.kill(pid)

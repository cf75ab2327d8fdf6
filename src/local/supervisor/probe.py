import enum
import psutil
import logging
from typing import Optional

from src.local.errors import ProcessControlError
from src.local.supervisor.platform import DEFUNCT_MARKER, UnsupportedPlatform, get_platform

log = logging.getLogger(__name__)


class ProcessStatus(enum.Enum):
    RUNNING = "running"
    DEAD = "dead"
    ZOMBIE = "zombie"
    STOPPED = "stopped"
    NOT_FOUND = "not_found"


DEFUNCT_STATUSES = frozenset({ProcessStatus.DEAD, ProcessStatus.ZOMBIE, ProcessStatus.STOPPED})

_PSUTIL_STATUS_MAP = {
    psutil.STATUS_ZOMBIE: ProcessStatus.ZOMBIE,
    psutil.STATUS_DEAD: ProcessStatus.DEAD,
    psutil.STATUS_STOPPED: ProcessStatus.STOPPED,
    psutil.STATUS_TRACING_STOP: ProcessStatus.STOPPED,
}


def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)


def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)


class ProcessProbe:
    """
    Classifies the liveness of a process from the OS process table.

    Sleeping, idle, waking and similar psutil states all count as RUNNING; only the
    dead, zombie and stopped families are considered defunct.
    """

    def __init__(self, platform: Optional[UnsupportedPlatform] = None, text_check_enabled: bool = True) -> None:
        self.platform = platform or get_platform()
        self.text_check_enabled = text_check_enabled

    def status(self, pid: int) -> ProcessStatus:
        try:
            raw_status = get_process_from_pid(pid).status()
        except psutil.ZombieProcess:
            return ProcessStatus.ZOMBIE
        except psutil.NoSuchProcess:
            return ProcessStatus.NOT_FOUND
        except psutil.Error as e:
            # Access denied and friends: the process exists but cannot be inspected.
            log.warning(f"Cannot read status of PID {pid}: {e}")
            return ProcessStatus.RUNNING
        return _PSUTIL_STATUS_MAP.get(raw_status, ProcessStatus.RUNNING)

    def is_listed_defunct(self, pid: int) -> bool:
        """
        Fallback heuristic: scans `ps` output for the PID for a "defunct" marker.

        The match is locale- and format-dependent, so a failure to run the listing
        only logs and answers False.
        """
        if not self.text_check_enabled or not self.platform.supports_fallbacks:
            return False
        try:
            output = self.platform.list_process(pid)
        except ProcessControlError as e:
            log.error(f"Cannot list process {pid}: {e}")
            return False
        for line in output.splitlines():
            if DEFUNCT_MARKER in line:
                log.warning(f"Process {pid} is listed as defunct.")
                return True
        return False

    def is_defunct(self, status: ProcessStatus, pid: int) -> bool:
        """
        Combines the status check with the textual fallback. The listing is only
        consulted when the status alone does not already say defunct.
        """
        if status in DEFUNCT_STATUSES:
            log.warning(f"Process {pid} is {status.value}.")
            return True
        return self.is_listed_defunct(pid)

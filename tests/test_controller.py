"""Tests for spawning and stopping processes and the OS utility fallbacks."""

from __future__ import annotations

import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from src.local.errors import ProcessControlError, SpawnError
from src.local.supervisor.controller import ProcessController
from src.local.supervisor.platform import PosixPlatform, UnsupportedPlatform, get_platform

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX utilities")


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestPosixPlatform:
    def test_unmount(self):
        platform = PosixPlatform(command_timeout=3)
        with patch("src.local.supervisor.platform.subprocess.run", return_value=_completed()) as run:
            assert platform.unmount("/mnt/v1")
        run.assert_called_once_with(["umount", "/mnt/v1"], capture_output=True, text=True, timeout=3, check=False)

    def test_unmount_nonzero_exit_is_a_warning(self):
        platform = PosixPlatform()
        with patch("src.local.supervisor.platform.subprocess.run",
                   return_value=_completed(32, stderr="umount: /mnt/v1: not mounted.")):
            assert not platform.unmount("/mnt/v1")

    def test_missing_utility_raises(self):
        platform = PosixPlatform()
        with patch("src.local.supervisor.platform.subprocess.run", side_effect=FileNotFoundError("umount")):
            with pytest.raises(ProcessControlError):
                platform.unmount("/mnt/v1")

    def test_timeout_raises(self):
        platform = PosixPlatform()
        with patch("src.local.supervisor.platform.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(["kill", "1"], 10)):
            with pytest.raises(ProcessControlError):
                platform.kill(1)

    def test_list_process(self):
        platform = PosixPlatform()
        with patch("src.local.supervisor.platform.subprocess.run", return_value=_completed(stdout="listing")) as run:
            assert platform.list_process(1234) == "listing"
        assert run.call_args[0][0] == ["ps", "-f", "1234"]

    def test_kill(self):
        platform = PosixPlatform()
        with patch("src.local.supervisor.platform.subprocess.run", return_value=_completed()) as run:
            assert platform.kill(1234)
        assert run.call_args[0][0] == ["kill", "-KILL", "1234"]


class TestUnsupportedPlatform:
    def test_fallbacks_are_noops(self):
        platform = UnsupportedPlatform()
        with patch("src.local.supervisor.platform.subprocess.run") as run:
            assert not platform.unmount("/mnt/v1")
            assert not platform.kill(1234)
            assert platform.list_process(1234) == ""
        run.assert_not_called()

    def test_platform_selection(self):
        with patch("src.local.supervisor.platform.os.name", "nt"):
            assert type(get_platform()) is UnsupportedPlatform
        with patch("src.local.supervisor.platform.os.name", "posix"):
            assert type(get_platform()) is PosixPlatform


class TestTerminate:
    def test_already_exited(self):
        handle = MagicMock()
        handle.poll.return_value = 0
        ProcessController(UnsupportedPlatform()).terminate(handle)
        handle.terminate.assert_not_called()

    def test_graceful(self):
        handle = MagicMock()
        handle.poll.return_value = None
        ProcessController(UnsupportedPlatform(), graceful_timeout=2).terminate(handle)
        handle.terminate.assert_called_once()
        handle.wait.assert_called_once_with(timeout=2)
        handle.kill.assert_not_called()

    def test_escalates_to_kill(self):
        handle = MagicMock()
        handle.poll.return_value = None
        handle.wait.side_effect = [subprocess.TimeoutExpired("rencfs", 2), 0]
        ProcessController(UnsupportedPlatform(), graceful_timeout=2).terminate(handle)
        handle.kill.assert_called_once()

    def test_survives_kill(self):
        handle = MagicMock()
        handle.poll.return_value = None
        handle.wait.side_effect = subprocess.TimeoutExpired("rencfs", 2)
        with pytest.raises(ProcessControlError):
            ProcessController(UnsupportedPlatform(), graceful_timeout=2).terminate(handle)

    def test_signal_not_permitted(self):
        handle = MagicMock()
        handle.poll.return_value = None
        handle.terminate.side_effect = PermissionError("Operation not permitted")
        with pytest.raises(ProcessControlError):
            ProcessController(UnsupportedPlatform()).terminate(handle)

    def test_process_vanished(self):
        handle = MagicMock()
        handle.poll.return_value = None
        handle.terminate.side_effect = ProcessLookupError()
        ProcessController(UnsupportedPlatform()).terminate(handle)


class TestSpawn:
    def test_missing_executable(self, tmp_path):
        controller = ProcessController(UnsupportedPlatform())
        with (tmp_path / "out").open("a") as out, (tmp_path / "err").open("a") as err:
            with pytest.raises(SpawnError):
                controller.spawn(str(tmp_path / "does-not-exist"), [], {}, out, err)

    @posix_only
    def test_spawn_and_terminate_real_process(self, tmp_path):
        controller = ProcessController(PosixPlatform(), graceful_timeout=5)
        with (tmp_path / "out").open("a") as out, (tmp_path / "err").open("a") as err:
            handle = controller.spawn(sys.executable, ["-c", "import time; time.sleep(30)"], {}, out, err)
        assert handle.poll() is None
        controller.terminate(handle)
        assert handle.poll() is not None

    @posix_only
    def test_child_receives_environment_and_output_files(self, tmp_path):
        controller = ProcessController(PosixPlatform())
        script = "import os; print(os.environ['ENCRYPTED_FS_PASSWORD'])"
        with (tmp_path / "out").open("a") as out, (tmp_path / "err").open("a") as err:
            handle = controller.spawn(sys.executable, ["-c", script], {"ENCRYPTED_FS_PASSWORD": "hunter2"}, out, err)
        controller.reap(handle)
        assert (tmp_path / "out").read_text().strip() == "hunter2"

    def test_fallbacks_delegate_to_platform(self):
        platform = MagicMock()
        platform.unmount.return_value = True
        platform.kill.return_value = False
        controller = ProcessController(platform)
        assert controller.force_unmount("/mnt/v1")
        assert not controller.force_kill(1234)
        platform.unmount.assert_called_once_with("/mnt/v1")
        platform.kill.assert_called_once_with(1234)

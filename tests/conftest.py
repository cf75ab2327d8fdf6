"""
Shared fixtures for the vault daemon tests.

Supervisors are built around a real SQLite store in a temporary directory and
mocked probe/controller collaborators, so no mounting executable is ever started.
"""

from __future__ import annotations

import itertools
from unittest.mock import MagicMock

import pytest

from src.local.database import VaultDBManager
from src.local.supervisor.probe import ProcessStatus
from src.local.supervisor.secrets import EnvironmentSecretProvider
from src.local.supervisor.supervisor import VaultSupervisor

PASSWORD_TEMPLATE = "TEST_VAULT_{id}_PASSWORD"

_pids = itertools.count(40000)


def make_child(pid: int | None = None, running: bool = True) -> MagicMock:
    """A stand-in for a subprocess.Popen handle."""
    child = MagicMock(name="Popen")
    child.pid = pid if pid is not None else next(_pids)
    child.poll.return_value = None if running else 0
    child.returncode = None if running else 0
    return child


@pytest.fixture
def vault_db(tmp_path):
    db = VaultDBManager(tmp_path / "vaults.db")
    db.initialize_database()
    return db


@pytest.fixture
def vault_id(vault_db, tmp_path):
    mount_point = tmp_path / "mnt"
    data_dir = tmp_path / "data"
    mount_point.mkdir()
    data_dir.mkdir()
    return vault_db.insert("personal", str(mount_point), str(data_dir))


@pytest.fixture
def probe():
    probe = MagicMock(name="ProcessProbe")
    probe.status.return_value = ProcessStatus.RUNNING
    probe.is_defunct.return_value = False
    return probe


@pytest.fixture
def controller():
    controller = MagicMock(name="ProcessController")
    controller.platform.supports_fallbacks = True
    controller.spawn.side_effect = lambda *args, **kwargs: make_child()
    controller.force_unmount.return_value = True
    controller.force_kill.return_value = True
    return controller


@pytest.fixture
def secrets():
    return EnvironmentSecretProvider(PASSWORD_TEMPLATE, environ={"TEST_VAULT_1_PASSWORD": "hunter2"})


@pytest.fixture
def make_supervisor(vault_db, probe, controller, secrets, tmp_path):
    def factory(vault_id: int, **overrides) -> VaultSupervisor:
        kwargs = dict(
            store=vault_db,
            probe=probe,
            controller=controller,
            secrets=secrets,
            logs_dir=tmp_path / "logs",
            executable="rencfs",
            warmup_seconds=0,
        )
        kwargs.update(overrides)
        return VaultSupervisor(vault_id, **kwargs)
    return factory


@pytest.fixture
def supervisor(make_supervisor, vault_id):
    return make_supervisor(vault_id)

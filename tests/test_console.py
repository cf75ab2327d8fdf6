"""Tests for the management console commands."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.local.console import execute_command
from src.local.database import VaultDBManager
from src.local.errors import CannotUnlockVault


@pytest.fixture
def service(tmp_path):
    service = MagicMock(name="VaultService")
    service.store = VaultDBManager(tmp_path / "vaults.db")
    service.store.initialize_database()
    service.is_unlocked.return_value = False
    service.logs_dir = tmp_path / "logs"
    return service


@pytest.fixture
def dirs(tmp_path):
    mount_point, data_dir = tmp_path / "mnt", tmp_path / "data"
    mount_point.mkdir()
    data_dir.mkdir()
    return str(mount_point), str(data_dir)


class TestVaultRecordCommands:
    def test_add(self, service, dirs, capsys):
        execute_command(service, "add", ["personal", *dirs])
        vaults = service.store.list_vaults()
        assert [(v.name, v.mount_point, v.data_dir, v.is_locked) for v in vaults] == [("personal", *dirs, True)]
        assert "saved" in capsys.readouterr().out

    def test_add_rejects_non_empty_data_dir(self, service, dirs, capsys):
        mount_point, data_dir = dirs
        with open(f"{data_dir}/leftover", "w") as f:
            f.write("x")
        execute_command(service, "add", ["personal", mount_point, data_dir])
        assert service.store.list_vaults() == []
        assert "must be empty" in capsys.readouterr().out

    def test_add_duplicate_name(self, service, dirs, capsys):
        service.store.insert("personal", "/mnt/other", "/data/other")
        execute_command(service, "add", ["personal", *dirs])
        assert "another vault named personal exists" in capsys.readouterr().out

    def test_rename(self, service):
        vault_id = service.store.insert("personal", "/mnt/v1", "/data/v1")
        execute_command(service, "rename", [str(vault_id), "private"])
        assert service.store.get(vault_id).name == "private"

    def test_remove_locked_vault(self, service):
        vault_id = service.store.insert("personal", "/mnt/v1", "/data/v1")
        execute_command(service, "remove", [str(vault_id)])
        service.forget.assert_called_once_with(vault_id)
        assert service.store.list_vaults() == []

    def test_remove_refuses_unlocked_vault(self, service, capsys):
        vault_id = service.store.insert("personal", "/mnt/v1", "/data/v1")
        service.forget.side_effect = ValueError(f"Vault {vault_id} is unlocked; lock it first.")
        execute_command(service, "remove", [str(vault_id)])
        assert len(service.store.list_vaults()) == 1
        assert "lock it first" in capsys.readouterr().out

    def test_list(self, service, capsys):
        service.store.insert("personal", "/mnt/v1", "/data/v1")
        execute_command(service, "list", [])
        out = capsys.readouterr().out
        assert "personal" in out
        assert "LOCKED" in out


class TestVaultOperationCommands:
    def test_unlock(self, service, capsys):
        execute_command(service, "unlock", ["1"])
        service.unlock.assert_called_once_with(1)
        assert "vault unlocked" in capsys.readouterr().out

    def test_unlock_failure_is_reported(self, service, capsys):
        service.unlock.side_effect = CannotUnlockVault(1)
        execute_command(service, "unlock", ["1"])
        assert "ERROR: cannot unlock vault" in capsys.readouterr().out

    def test_lock(self, service):
        execute_command(service, "lock", ["3"])
        service.lock.assert_called_once_with(3)

    def test_invalid_id(self, service, capsys):
        execute_command(service, "lock", ["three"])
        service.lock.assert_not_called()
        assert "Invalid vault id" in capsys.readouterr().out

    def test_missing_id(self, service, capsys):
        execute_command(service, "unlock", [])
        assert "Usage: unlock <id>" in capsys.readouterr().out

    def test_mount_point(self, service, dirs):
        vault_id = service.store.insert("personal", "/mnt/v1", "/data/v1")
        execute_command(service, "mount-point", [str(vault_id), dirs[0]])
        service.change_mount_point.assert_called_once_with(vault_id, dirs[0])

    def test_data_dir_same_path(self, service, dirs, capsys):
        vault_id = service.store.insert("personal", *dirs)
        execute_command(service, "data-dir", [str(vault_id), dirs[1]])
        service.change_data_dir.assert_not_called()
        assert "different path" in capsys.readouterr().out

    def test_status(self, service, capsys):
        service.status.return_value = [
            {"id": 1, "name": "personal", "mount_point": "/mnt/v1", "data_dir": "/data/v1",
             "locked": 1, "pid": None, "process_status": None},
        ]
        execute_command(service, "status", [])
        assert "LOCKED" in capsys.readouterr().out


class TestConsoleCommands:
    def test_exit(self, service):
        assert execute_command(service, "exit", [])

    def test_unknown_command_does_not_exit(self, service):
        assert not execute_command(service, "frobnicate", [])

    def test_help(self, service, capsys):
        assert not execute_command(service, "help", [])
        assert "mount-point" in capsys.readouterr().out

    def test_config_show(self, service, capsys):
        execute_command(service, "config", ["show"])
        assert "UNLOCK_WARMUP_SECONDS" in capsys.readouterr().out

    def test_config_set_non_modifiable(self, service, capsys):
        execute_command(service, "config", ["set", "APP_NAME", "other"])
        assert "not a modifiable setting" in capsys.readouterr().out

    def test_logs_without_database(self, service, capsys):
        service.logs_dir.mkdir()
        execute_command(service, "logs", [])
        assert "last 0 log entries" in capsys.readouterr().out

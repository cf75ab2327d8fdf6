"""Tests for the passphrase lookup."""

from __future__ import annotations

import pytest

from src.local.errors import SecretUnavailableError
from src.local.supervisor.secrets import EnvironmentSecretProvider


def test_reads_per_vault_variable():
    secrets = EnvironmentSecretProvider("VAULT_{id}_PASSWORD", environ={"VAULT_3_PASSWORD": "s3cret"})
    assert secrets.get_password(3) == "s3cret"


@pytest.mark.parametrize("environ", [{}, {"VAULT_3_PASSWORD": ""}])
def test_missing_or_empty_passphrase(environ):
    with pytest.raises(SecretUnavailableError, match="VAULT_3_PASSWORD"):
        EnvironmentSecretProvider("VAULT_{id}_PASSWORD", environ=environ).get_password(3)


def test_defaults_to_process_environment(monkeypatch):
    monkeypatch.setenv("VAULT_5_PASSWORD", "from-env")
    assert EnvironmentSecretProvider("VAULT_{id}_PASSWORD").get_password(5) == "from-env"

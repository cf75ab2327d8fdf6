import os
import logging
from typing import Mapping, Optional

from src.local.errors import SecretUnavailableError

log = logging.getLogger(__name__)


class EnvironmentSecretProvider:
    """
    Looks up vault passphrases in the environment (which includes values loaded from `.env`).

    There is deliberately no default passphrase: a vault without a configured secret
    cannot be unlocked.
    """

    def __init__(self, template: str, environ: Optional[Mapping[str, str]] = None) -> None:
        """
        :param template: Variable name template with an ``{id}`` placeholder.
        :param environ: Mapping to read from, defaults to ``os.environ``.
        """
        self.template = template
        self.environ = environ if environ is not None else os.environ

    def get_password(self, vault_id: int) -> str:
        """
        :raises SecretUnavailableError: If no non-empty passphrase is configured for the vault.
        """
        var_name = self.template.format(id=vault_id)
        password = self.environ.get(var_name)
        if not password:
            raise SecretUnavailableError(f"No passphrase configured for vault {vault_id} (expected ${var_name}).")
        return password

"""
Error types shared by the vault supervisor and its collaborators.

Only the four coarse ``VaultHandlerError`` kinds are meant to cross the
supervisor boundary. Everything else is logged where it happens and mapped to
one of them before reaching a caller.
"""

from typing import Any, Dict, Optional


class VaultHandlerError(Exception):
    """Base class for the coarse, serializable supervisor error kinds."""

    code = "VAULT_HANDLER_ERROR"
    message = "vault handler error"

    def __init__(self, vault_id: int, message: Optional[str] = None):
        self.vault_id = vault_id
        super().__init__(message or self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Returns a transport-friendly representation of the error."""
        return {"code": self.code, "vault_id": self.vault_id, "message": str(self)}

    @classmethod
    def from_code(cls, code: str, vault_id: int) -> "VaultHandlerError":
        """
        Rebuilds an error from its code, as received from the other side of a transport.

        :param code: One of the ``code`` values of the subclasses.
        :param vault_id: The vault the error refers to.
        :raises ValueError: If the code is unknown.
        """
        for kind in cls.__subclasses__():
            if kind.code == code:
                return kind(vault_id)
        raise ValueError(f"Unknown vault handler error code '{code}'.")


class CannotLockVault(VaultHandlerError):
    code = "CANNOT_LOCK_VAULT"
    message = "cannot lock vault"


class CannotUnlockVault(VaultHandlerError):
    code = "CANNOT_UNLOCK_VAULT"
    message = "cannot unlock vault"


class CannotChangeMountPoint(VaultHandlerError):
    code = "CANNOT_CHANGE_MOUNT_POINT"
    message = "cannot change mount point"


class CannotChangeDataDir(VaultHandlerError):
    code = "CANNOT_CHANGE_DATA_DIR"
    message = "cannot change data dir"


class ConfigurationError(RuntimeError):
    """Raised when the application environment (e.g. base data directory) cannot be resolved."""


class SpawnError(RuntimeError):
    """Raised when the mounting executable cannot be started."""


class ProcessControlError(RuntimeError):
    """Raised when a signal or an OS utility cannot be delivered to a process."""


class SecretUnavailableError(LookupError):
    """Raised when no passphrase is configured for a vault."""

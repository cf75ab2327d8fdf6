from pathlib import Path
from typing import Optional


def validate_name(name: str) -> str:
    """
    Returns the trimmed vault name.

    :raises ValueError: If the name is blank.
    """
    name = name.strip()
    if not name:
        raise ValueError("invalid name")
    return name


def _validate_empty_dir(path: str, label: str, current: Optional[str]) -> str:
    if not path:
        raise ValueError(f"invalid {label}")
    resolved = Path(path).expanduser()
    if current is not None and str(resolved) == current:
        raise ValueError("you need to select a different path than existing one")
    if not resolved.is_dir():
        raise ValueError(f"{label} must be an existing directory")
    if any(resolved.iterdir()):
        raise ValueError(f"{label} must be empty")
    return str(resolved)


def validate_mount_point(path: str, current: Optional[str] = None) -> str:
    """
    Checks a mount point: an existing, empty directory, different from the current one.

    :return: The normalized path.
    :raises ValueError: With a user-facing message when the path is not acceptable.
    """
    return _validate_empty_dir(path, "mount point", current)


def validate_data_dir(path: str, current: Optional[str] = None) -> str:
    """
    Checks a data directory: an existing, empty directory, different from the current one.

    :return: The normalized path.
    :raises ValueError: With a user-facing message when the path is not acceptable.
    """
    return _validate_empty_dir(path, "data dir", current)

"""Shared file utilities for logto-client.

- get_app_dir: OS-appropriate application directory
- set_secure_permissions: Owner-only file/directory permissions
- load_validated_json: JSON file -> validated Pydantic model
- write_json_file: Pydantic model -> JSON file with secure permissions
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TypeVar

import click
from pydantic import BaseModel, ValidationError

from logto_client.constants import APP_NAME

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

__all__ = [
    "get_app_dir",
    "set_secure_permissions",
    "load_validated_json",
    "write_json_file",
]


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Uses click.get_app_dir() which returns:
    - macOS: ~/Library/Application Support/logto-client
    - Linux: ~/.config/logto-client (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\logto-client

    Returns:
        Path to the application directory.
    """
    return Path(click.get_app_dir(APP_NAME))


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set owner-only permissions on file or directory.

    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Permission errors are ignored since some
    filesystems don't support chmod.

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
    recovery_hint: str | None = None,
) -> T:
    """Load JSON file and validate against Pydantic model.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "config").
        recovery_hint: Optional hint appended to validation errors.

    Returns:
        Validated Pydantic model instance.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If JSON is invalid or validation fails.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"]) or "(root)"
            errors.append(f"  - {loc}: {error['msg']}")

        hint = f"\n\n{recovery_hint}" if recovery_hint else ""
        raise ValueError(
            f"Invalid {file_type} in {file_path}:\n" + "\n".join(errors) + hint
        ) from e


def write_json_file(file_path: Path, model: BaseModel) -> None:
    """Write a Pydantic model to a JSON file with owner-only permissions.

    Args:
        file_path: Destination path. Parent directories are created.
        model: Model to serialize.

    Raises:
        OSError: If the file cannot be written.
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(file_path.parent, is_directory=True)
    file_path.write_text(model.model_dump_json(indent=2) + "\n", encoding="utf-8")
    set_secure_permissions(file_path)

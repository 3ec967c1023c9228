"""Key-value storage for credentials and the access-token cache.

The token lifecycle persists three string items (refresh token, ID token,
serialized access-token cache) through the Storage contract:

    get_item(key) -> str   ("" means absent)
    set_item(key, value)

Backends:
1. MemoryStorage: process-lifetime dict (tests, short-lived scripts)
2. KeychainStorage: OS keychain via keyring library
   - macOS: Keychain
   - Windows: Credential Locker
   - Linux: Secret Service (GNOME Keyring, KDE Wallet)
3. EncryptedFileStorage (fallback): Fernet-encrypted JSON file
   - Used when keyring is unavailable
   - Key derived from machine-specific identifiers

Applications may provide their own backend by subclassing Storage.
"""

from __future__ import annotations

__all__ = [
    "EncryptedFileStorage",
    "KeychainStorage",
    "MemoryStorage",
    "Storage",
    "create_storage",
    "get_storage_info",
]

import base64
import hashlib
import json
import platform
import re
import socket
import subprocess
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from logto_client.constants import APP_NAME, ENCRYPTED_STORAGE_FILE
from logto_client.exceptions import StorageError
from logto_client.telemetry.system_logger import get_system_logger
from logto_client.utils.file_helpers import get_app_dir, set_secure_permissions

if TYPE_CHECKING:
    from cryptography.fernet import Fernet

# Service name for keyring storage; each storage key is a keyring "username"
KEYRING_SERVICE = APP_NAME


class Storage(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def get_item(self, key: str) -> str:
        """Return the stored value, or "" if nothing is stored.

        Raises:
            StorageError: If the backend cannot be read.
        """

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value.

        Raises:
            StorageError: If the backend cannot be written.
        """


class MemoryStorage(Storage):
    """In-memory storage. Contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str:
        return self._data.get(key, "")

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value


class KeychainStorage(Storage):
    """Storage using OS keychain via keyring library.

    Each item is one keychain entry under the ``logto-client`` service.
    Setting an empty value deletes the entry.
    """

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    def get_item(self, key: str) -> str:
        import keyring

        try:
            value = keyring.get_password(self._service, key)
        except Exception as e:
            raise StorageError(f"Failed to access keychain: {e}") from e
        return value or ""

    def set_item(self, key: str, value: str) -> None:
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            if value:
                keyring.set_password(self._service, key, value)
            else:
                keyring.delete_password(self._service, key)
        except PasswordDeleteError:
            # Nothing stored under this key
            pass
        except Exception as e:
            raise StorageError(f"Failed to write {key!r} to keychain: {e}") from e


_MACHINE_ID_FILES = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))
_MACOS_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


def _machine_id() -> str:
    """Stable identifier of this machine; the hostname when none is found."""
    for path in _MACHINE_ID_FILES:
        try:
            machine_id = path.read_text().strip()
        except OSError:
            continue
        if machine_id:
            return machine_id

    if platform.system() == "Darwin":
        try:
            output = subprocess.run(
                ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
                capture_output=True,
                text=True,
                timeout=5,
            ).stdout
        except (subprocess.SubprocessError, OSError):
            output = ""
        match = _MACOS_UUID.search(output)
        if match:
            return match.group(1)

    return socket.gethostname()


class EncryptedFileStorage(Storage):
    """Fallback storage using a Fernet-encrypted JSON file.

    All items live in one file, rewritten on every set_item(). The key is
    derived from machine-specific identifiers, which makes the file useless
    when copied to another machine but is weaker than a real keychain.

    Key material: machine ID (/etc/machine-id, or the macOS platform UUID),
    hostname and an application salt.
    """

    def __init__(self, storage_path: Path | None = None) -> None:
        self._storage_path = storage_path or get_app_dir() / ENCRYPTED_STORAGE_FILE
        self._key: bytes | None = None
        self._lock = threading.Lock()

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def _derive_key(self) -> bytes:
        """Derive the Fernet key with PBKDF2 over machine ID and hostname."""
        if self._key is not None:
            return self._key

        combined = f"{_machine_id()}:{socket.gethostname()}:{APP_NAME}-storage"
        salt = f"{APP_NAME}-v1".encode()
        key = hashlib.pbkdf2_hmac(
            "sha256",
            combined.encode(),
            salt,
            iterations=100_000,
            dklen=32,
        )

        # Fernet requires URL-safe base64 encoded key
        self._key = base64.urlsafe_b64encode(key)
        return self._key

    def _get_fernet(self) -> "Fernet":
        from cryptography.fernet import Fernet

        return Fernet(self._derive_key())

    def _read_all(self) -> dict[str, str]:
        if not self._storage_path.exists():
            return {}

        try:
            decrypted = self._get_fernet().decrypt(self._storage_path.read_bytes())
        except Exception as e:
            raise StorageError(
                f"Failed to decrypt storage file (may be corrupted or key changed): {e}"
            ) from e

        try:
            data = json.loads(decrypted.decode())
        except ValueError as e:
            raise StorageError(f"Failed to parse storage file (may be corrupted): {e}") from e

        if not isinstance(data, dict):
            raise StorageError("Failed to parse storage file: expected a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            encrypted = self._get_fernet().encrypt(json.dumps(data).encode())

            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            set_secure_permissions(self._storage_path.parent, is_directory=True)

            # Replace atomically so a crash never leaves a half-written file
            tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
            tmp_path.write_bytes(encrypted)
            set_secure_permissions(tmp_path)
            tmp_path.replace(self._storage_path)
        except Exception as e:
            raise StorageError(f"Failed to save encrypted storage: {e}") from e

    def get_item(self, key: str) -> str:
        with self._lock:
            return self._read_all().get(key, "")

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            if value:
                data[key] = value
            else:
                data.pop(key, None)
            self._write_all(data)


# Keychain entry written and removed to confirm the backend works
_AVAILABILITY_KEY = "availability-check"


def _is_keyring_available() -> bool:
    """True if the OS keychain stores and returns an item under KEYRING_SERVICE."""
    from keyring import get_keyring
    from keyring.backends.fail import Keyring as FailKeyring

    logger = get_system_logger()

    try:
        backend = get_keyring()
    except Exception as e:
        logger.debug({"event": "keyring_unavailable", "reason": "backend_error", "error": str(e)})
        return False
    if isinstance(backend, FailKeyring):
        logger.debug({"event": "keyring_unavailable", "reason": "fail_backend"})
        return False

    storage = KeychainStorage()
    try:
        storage.set_item(_AVAILABILITY_KEY, "ok")
        usable = storage.get_item(_AVAILABILITY_KEY) == "ok"
        storage.set_item(_AVAILABILITY_KEY, "")
    except StorageError as e:
        logger.debug({"event": "keyring_unavailable", "reason": "keyring_error", "error": str(e)})
        return False
    return usable


def create_storage() -> Storage:
    """Create the appropriate persistent storage backend.

    Prefers keychain storage when available, falls back to encrypted file.

    Returns:
        Storage instance (KeychainStorage or EncryptedFileStorage).
    """
    if _is_keyring_available():
        return KeychainStorage()
    return EncryptedFileStorage()


def get_storage_info(storage: Storage) -> dict[str, str]:
    """Describe a storage backend for status display.

    Args:
        storage: Backend to describe.

    Returns:
        Dict with a 'backend' key plus backend-specific details.
    """
    if isinstance(storage, KeychainStorage):
        import keyring

        return {
            "backend": "keychain",
            "keyring_backend": type(keyring.get_keyring()).__name__,
            "service": storage._service,
        }
    if isinstance(storage, EncryptedFileStorage):
        return {
            "backend": "encrypted_file",
            "location": str(storage.storage_path),
        }
    if isinstance(storage, MemoryStorage):
        return {"backend": "memory"}
    return {"backend": type(storage).__name__}

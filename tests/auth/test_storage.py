"""Tests for storage backends.

Tests cover:
- MemoryStorage contract
- EncryptedFileStorage (round trip, permissions, corruption)
- KeychainStorage and the keychain availability check with keyring patched
- create_storage backend selection
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from logto_client.auth.storage import (
    KEYRING_SERVICE,
    EncryptedFileStorage,
    KeychainStorage,
    MemoryStorage,
    _is_keyring_available,
    _machine_id,
    create_storage,
    get_storage_info,
)
from logto_client.exceptions import StorageError


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_missing_key_returns_empty_string(self) -> None:
        assert MemoryStorage().get_item("nope") == ""

    def test_set_then_get(self) -> None:
        storage = MemoryStorage()

        storage.set_item("k", "v")

        assert storage.get_item("k") == "v"

    def test_initial_values(self) -> None:
        assert MemoryStorage({"k": "v"}).get_item("k") == "v"


class TestEncryptedFileStorage:
    """Tests for EncryptedFileStorage backend."""

    def test_set_and_get_preserves_value(self, tmp_path: Path) -> None:
        storage = EncryptedFileStorage(tmp_path / "storage.enc")

        storage.set_item("logto_refresh_token", "rt-1")
        storage.set_item("logto_id_token", "id-1")

        assert storage.get_item("logto_refresh_token") == "rt-1"
        assert storage.get_item("logto_id_token") == "id-1"

    def test_values_survive_new_instance(self, tmp_path: Path) -> None:
        path = tmp_path / "storage.enc"
        EncryptedFileStorage(path).set_item("k", "v")

        assert EncryptedFileStorage(path).get_item("k") == "v"

    def test_file_is_not_plaintext(self, tmp_path: Path) -> None:
        path = tmp_path / "storage.enc"

        EncryptedFileStorage(path).set_item("k", "very-secret-value")

        assert b"very-secret-value" not in path.read_bytes()

    def test_get_returns_empty_when_no_file(self, tmp_path: Path) -> None:
        assert EncryptedFileStorage(tmp_path / "nonexistent.enc").get_item("k") == ""

    def test_empty_value_removes_item(self, tmp_path: Path) -> None:
        storage = EncryptedFileStorage(tmp_path / "storage.enc")
        storage.set_item("k", "v")

        storage.set_item("k", "")

        assert storage.get_item("k") == ""

    def test_file_has_secure_permissions(self, tmp_path: Path) -> None:
        storage = EncryptedFileStorage(tmp_path / "storage.enc")

        storage.set_item("k", "v")

        mode = storage.storage_path.stat().st_mode & 0o777
        assert mode == 0o600

    def test_corrupted_file_raises_storage_error(self, tmp_path: Path) -> None:
        path = tmp_path / "storage.enc"
        path.write_bytes(b"garbage")

        with pytest.raises(StorageError, match="decrypt"):
            EncryptedFileStorage(path).get_item("k")

    def test_file_from_another_machine_is_unreadable(self, tmp_path: Path) -> None:
        path = tmp_path / "storage.enc"
        with patch("logto_client.auth.storage._machine_id", return_value="machine-a"):
            EncryptedFileStorage(path).set_item("k", "v")

        with patch("logto_client.auth.storage._machine_id", return_value="machine-b"):
            with pytest.raises(StorageError, match="decrypt"):
                EncryptedFileStorage(path).get_item("k")

    def test_machine_id_falls_back_to_hostname(self) -> None:
        with (
            patch("logto_client.auth.storage._MACHINE_ID_FILES", ()),
            patch("logto_client.auth.storage.platform.system", return_value="Linux"),
            patch("logto_client.auth.storage.socket.gethostname", return_value="host-1"),
        ):
            assert _machine_id() == "host-1"


class TestKeychainStorage:
    """Tests for KeychainStorage with keyring patched."""

    def test_get_returns_empty_when_missing(self) -> None:
        with patch("keyring.get_password", return_value=None):
            assert KeychainStorage().get_item("k") == ""

    def test_set_writes_password(self) -> None:
        with patch("keyring.set_password") as mock_set:
            KeychainStorage(service="svc").set_item("k", "v")

        mock_set.assert_called_once_with("svc", "k", "v")

    def test_empty_value_deletes_entry(self) -> None:
        with patch("keyring.delete_password") as mock_delete:
            KeychainStorage(service="svc").set_item("k", "")

        mock_delete.assert_called_once_with("svc", "k")

    def test_backend_failure_raises_storage_error(self) -> None:
        with patch("keyring.get_password", side_effect=RuntimeError("dbus down")):
            with pytest.raises(StorageError, match="keychain"):
                KeychainStorage().get_item("k")


class TestCreateStorage:
    """Tests for backend selection."""

    def test_prefers_keychain_when_available(self) -> None:
        with patch("logto_client.auth.storage._is_keyring_available", return_value=True):
            assert isinstance(create_storage(), KeychainStorage)

    def test_falls_back_to_encrypted_file(self) -> None:
        with patch("logto_client.auth.storage._is_keyring_available", return_value=False):
            assert isinstance(create_storage(), EncryptedFileStorage)

    def test_storage_info_for_file_backend(self, tmp_path: Path) -> None:
        info = get_storage_info(EncryptedFileStorage(tmp_path / "s.enc"))

        assert info == {"backend": "encrypted_file", "location": str(tmp_path / "s.enc")}

    def test_storage_info_for_memory_backend(self) -> None:
        assert get_storage_info(MemoryStorage()) == {"backend": "memory"}


class TestKeyringAvailability:
    """Tests for the keychain check behind create_storage."""

    def test_fail_backend_is_unavailable(self) -> None:
        from keyring.backends.fail import Keyring as FailKeyring

        with patch("keyring.get_keyring", return_value=FailKeyring()):
            assert _is_keyring_available() is False

    def test_write_failure_is_unavailable(self) -> None:
        with (
            patch("keyring.get_keyring"),
            patch("keyring.set_password", side_effect=RuntimeError("dbus down")),
        ):
            assert _is_keyring_available() is False

    def test_round_trip_uses_storage_service(self) -> None:
        with (
            patch("keyring.get_keyring"),
            patch("keyring.set_password") as mock_set,
            patch("keyring.get_password", return_value="ok"),
            patch("keyring.delete_password") as mock_delete,
        ):
            assert _is_keyring_available() is True

        mock_set.assert_called_once_with(KEYRING_SERVICE, "availability-check", "ok")
        mock_delete.assert_called_once_with(KEYRING_SERVICE, "availability-check")

    def test_value_mismatch_is_unavailable(self) -> None:
        with (
            patch("keyring.get_keyring"),
            patch("keyring.set_password"),
            patch("keyring.get_password", return_value=None),
            patch("keyring.delete_password"),
        ):
            assert _is_keyring_available() is False

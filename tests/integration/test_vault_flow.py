"""Integration tests: register, log in and use a vault end to end on SQLite."""

import contextlib
import json
import os

import pytest
from unittest.mock import patch

from datavault import DataVault, VaultSettings
from datavault.core.exceptions import (
    ConfigurationError,
    SessionClosedError,
    StorageError,
    UserExistsError,
    ValidationError,
)
from datavault.core.models import AccessAction, FileInfo
from datavault.database.connection import DatabaseConnection
from datavault.security.cipher import CIPHER_CBC, CIPHER_GCM
from datavault.security.kdf import LEGACY_SALT
from datavault.security.passwords import RecordFormat
from datavault.security.session import EncryptionManager, SessionState


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def settings(tmp_path):
    return VaultSettings(db_path=tmp_path / "vault.db", keys_dir=tmp_path / "keys")


@pytest.fixture
def vault(settings):
    dv = DataVault(settings)
    yield dv
    dv.close()


def _actions(vault, user_id):
    return [entry.action for entry in reversed(vault.users.get_access_log(user_id))]


# ==============================================================================
# Tests: Registration and login
# ==============================================================================

def test_register_creates_user_and_key_file(vault, settings):
    user = vault.register("alice", "Secret123")
    key_path = settings.key_file_path(user.id)
    assert key_path.exists()

    meta = json.loads(key_path.read_text(encoding="utf-8"))
    assert meta["cipher"] == CIPHER_GCM
    assert "Secret123" not in key_path.read_text(encoding="utf-8")
    assert _actions(vault, user.id) == [AccessAction.REGISTER]


def test_register_rejects_weak_password(vault, settings):
    with pytest.raises(ValidationError):
        vault.register("alice", "12345")
    assert vault.users.find_by_username("alice") is None
    assert not settings.keys_dir.exists() or not list(settings.keys_dir.glob("*.json"))


def test_register_duplicate(vault):
    vault.register("alice", "Secret123")
    with pytest.raises(UserExistsError):
        vault.register("alice", "Another123")


def test_register_rolls_back_when_key_file_fails(vault, settings):
    # stale key material for the id the next user will get
    settings.keys_dir.mkdir(parents=True)
    settings.key_file_path(1).write_text("{}", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        vault.register("alice", "Secret123")
    assert vault.users.find_by_username("alice") is None


def test_failed_key_file_write_does_not_block_later_registrations(vault, settings):
    with patch("datavault.security.keyfile.json.dump", side_effect=OSError("No space left on device")):
        with pytest.raises(StorageError):
            vault.register("alice", "Secret123")
    assert vault.users.find_by_username("alice") is None
    assert not settings.key_file_path(1).exists()

    bob = vault.register("bob", "Secret123")
    assert settings.key_file_path(bob.id).exists()
    assert vault.login("bob", "Secret123") is not None


@contextlib.contextmanager
def _transaction_with_failing_commit(db):
    conn = db._get_connection()
    conn.execute("BEGIN")
    yield
    conn.rollback()
    raise StorageError("database is locked")


def test_key_file_removed_when_commit_fails(vault, settings):
    with patch.object(DatabaseConnection, "transaction", _transaction_with_failing_commit):
        with pytest.raises(StorageError, match="locked"):
            vault.register("alice", "Secret123")
    assert vault.users.find_by_username("alice") is None
    assert not settings.key_file_path(1).exists()

    bob = vault.register("bob", "Secret123")
    assert bob.id == 1
    assert vault.login("bob", "Secret123") is not None


def test_login_wrong_password_returns_none(vault):
    vault.register("alice", "Secret123")
    assert vault.login("alice", "Secret124") is None
    assert vault.login("bob", "Secret123") is None


def test_login_opens_session(vault):
    user = vault.register("alice", "Secret123")
    with vault.login("alice", "Secret123") as session:
        assert session.user.id == user.id
        assert session.user.last_login is not None
        assert session.encryption.cipher_name == CIPHER_GCM
        assert not session.closed
    assert session.closed
    assert session.encryption.state is SessionState.DISPOSED
    assert _actions(vault, user.id) == [AccessAction.REGISTER, AccessAction.LOGIN]


# ==============================================================================
# Tests: Secrets and files through a session
# ==============================================================================

def test_secrets_persist_across_sessions(vault):
    vault.register("alice", "Secret123")

    with vault.login("alice", "Secret123") as session:
        secret_id = session.add_secret("github", "ghp_token")
        session.add_secret("aws", "AKIA_key")

    with vault.login("alice", "Secret123") as session:
        assert session.view_secret(secret_id).decrypted_value == "ghp_token"
        assert session.view_secret_by_name("aws").decrypted_value == "AKIA_key"
        assert [s.key_name for s in session.list_secrets("git")] == ["github"]

        session.update_secret(secret_id, "github", "ghp_rotated")
        assert session.view_secret(secret_id).decrypted_value == "ghp_rotated"
        session.delete_secret(secret_id)
        assert [s.key_name for s in session.list_secrets()] == ["aws"]


def test_files_persist_across_sessions(vault):
    vault.register("alice", "Secret123")
    data = os.urandom(2048)

    with vault.login("alice", "Secret123") as session:
        session.save_file("backup.tar", data, "application/x-tar")

    with vault.login("alice", "Secret123") as session:
        assert session.list_files() == [FileInfo("backup.tar", 2048)]
        assert session.open_file("backup.tar") == data
        assert data not in session.files.get_encrypted_bytes(session.user.id, "backup.tar")
        session.delete_file("backup.tar")
        assert session.list_files() == []


def test_users_cannot_read_each_other(vault):
    vault.register("alice", "Secret123")
    vault.register("bob", "Secret456")

    with vault.login("alice", "Secret123") as alice:
        alice.add_secret("shared-name", "alice-value")

    with vault.login("bob", "Secret456") as bob:
        assert bob.list_secrets() == []
        bob.add_secret("shared-name", "bob-value")
        assert bob.view_secret_by_name("shared-name").decrypted_value == "bob-value"


def test_session_actions_are_logged(vault):
    user = vault.register("alice", "Secret123")
    with vault.login("alice", "Secret123") as session:
        secret_id = session.add_secret("github", "x")
        session.view_secret(secret_id)
        session.save_file("a.txt", b"hello")
        session.open_file("a.txt")

    assert _actions(vault, user.id) == [
        AccessAction.REGISTER,
        AccessAction.LOGIN,
        AccessAction.ADD,
        AccessAction.VIEW,
        AccessAction.ADD_FILE,
        AccessAction.VIEW_FILE,
    ]


def test_closed_session_refuses_access(vault):
    vault.register("alice", "Secret123")
    session = vault.login("alice", "Secret123")
    secret_id = session.add_secret("github", "x")
    session.close()
    with pytest.raises(SessionClosedError):
        session.view_secret(secret_id)


def test_oversized_file_through_session(tmp_path):
    settings = VaultSettings(db_path=tmp_path / "v.db", keys_dir=tmp_path / "keys", max_file_size=16)
    vault = DataVault(settings)
    vault.register("alice", "Secret123")
    with vault.login("alice", "Secret123") as session:
        with pytest.raises(ValidationError):
            session.save_file("big.bin", b"x" * 17)
        session.save_file("ok.bin", b"x" * 16)
    vault.close()


# ==============================================================================
# Tests: Vaults and records created before key files
# ==============================================================================

def test_legacy_vault_without_key_file(vault):
    """Users without a key file fall back to the global salt and CBC."""
    user = vault.users.register_user("old", "Secret123")
    legacy = EncryptionManager("Secret123", salt=LEGACY_SALT, cipher=CIPHER_CBC)
    token = legacy.encrypt("from the old app")
    vault.db.execute(
        "INSERT INTO vault_data (user_id, key_name, secret_value) VALUES (?, ?, ?)",
        (user.id, "note", token),
    )

    with vault.login("old", "Secret123") as session:
        assert session.encryption.cipher_name == CIPHER_CBC
        assert session.view_secret_by_name("note").decrypted_value == "from the old app"


def test_legacy_record_is_upgraded_on_login(vault):
    vault.users.register_legacy_user("old", "Secret123")
    with vault.login("old", "Secret123") as session:
        assert session.user.record_format == RecordFormat.COMBINED.value

    stored = vault.users.find_by_username("old")
    assert stored.record_format == RecordFormat.COMBINED.value
    assert stored.salt is None
    assert vault.login("old", "Secret123") is not None


def test_legacy_record_kept_when_upgrade_disabled(settings):
    vault = DataVault(settings, upgrade_legacy_records=False)
    vault.users.register_legacy_user("old", "Secret123")
    with vault.login("old", "Secret123") as session:
        assert session.user.record_format == RecordFormat.LEGACY.value
    assert vault.users.find_by_username("old").record_format == RecordFormat.LEGACY.value
    vault.close()


def test_access_log_failure_does_not_block_login(vault):
    vault.register("alice", "Secret123")
    with patch.object(vault.users.access_log_model, "create", side_effect=StorageError("locked")):
        session = vault.login("alice", "Secret123")
    assert session is not None
    session.close()

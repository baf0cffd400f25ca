"""Unit tests for database connection and ORM-style model helpers."""

import sqlite3

import pytest

from datavault.core.exceptions import ConstraintError, StorageError
from datavault.core.models import AccessAction, AccessLog, FileInfo, Secret, User, VaultFile
from datavault.database.connection import DatabaseConnection
from datavault.database.models import AccessLogModel, FileModel, SecretModel, UserModel
from datavault.database.schema import SCHEMA_VERSION, get_drop_schema

# --- Fixtures ---


@pytest.fixture
def db_conn(tmp_path):
    """Create an initialized DatabaseConnection backed by a temporary SQLite file."""
    conn = DatabaseConnection(tmp_path / "vault.db")
    conn.initialize()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def user(db_conn):
    return UserModel(db_conn).create("alice", "c2FsdA==:aGFzaA==", None, "combined")


# --- DatabaseConnection tests ---


def test_initialize_is_idempotent(db_conn):
    db_conn.initialize()
    assert db_conn.get_version() == SCHEMA_VERSION


def test_initialize_creates_parent_directory(tmp_path):
    conn = DatabaseConnection(tmp_path / "nested" / "dir" / "vault.db")
    conn.initialize()
    assert (tmp_path / "nested" / "dir" / "vault.db").exists()
    conn.close()


def test_fetch_helpers_return_dicts(db_conn, user):
    row = db_conn.fetch_one("SELECT * FROM users WHERE id = ?", (user.id,))
    assert isinstance(row, dict)
    assert row["username"] == "alice"
    assert db_conn.fetch_one("SELECT * FROM users WHERE id = ?", (999,)) is None
    assert db_conn.fetch_all("SELECT * FROM users WHERE id = ?", (999,)) == []


def test_sql_errors_are_wrapped(db_conn):
    with pytest.raises(StorageError) as excinfo:
        db_conn.execute("SELECT * FROM no_such_table")
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_integrity_errors_become_constraint_errors(db_conn, user):
    with pytest.raises(ConstraintError):
        UserModel(db_conn).create("alice", "x", None, "combined")


def test_transaction_rolls_back_on_error(db_conn):
    with pytest.raises(RuntimeError):
        with db_conn.transaction():
            UserModel(db_conn).create("bob", "x", None, "combined")
            raise RuntimeError("abort")
    assert UserModel(db_conn).get_by_username("bob") is None


def test_transaction_commits(db_conn):
    with db_conn.transaction():
        UserModel(db_conn).create("bob", "x", None, "combined")
    assert UserModel(db_conn).get_by_username("bob") is not None


def test_get_version_without_schema(tmp_path):
    conn = DatabaseConnection(tmp_path / "empty.db")
    assert conn.get_version() == 0
    conn.close()


def test_drop_schema_statements(db_conn):
    for statement in get_drop_schema():
        db_conn.execute(statement)
    assert db_conn.get_version() == 0


# --- UserModel tests ---


def test_user_create_and_get(db_conn, user):
    assert isinstance(user, User)
    assert user.id is not None
    assert user.record_format == "combined"
    assert user.salt is None
    assert user.created_at is not None
    assert user.last_login is None
    assert UserModel(db_conn).get(user.id) == user


def test_user_touch_last_login(db_conn, user):
    users = UserModel(db_conn)
    assert users.touch_last_login(user.id)
    assert users.get(user.id).last_login is not None
    assert not users.touch_last_login(999)


def test_user_update_credentials(db_conn):
    users = UserModel(db_conn)
    legacy = users.create("carol", "aGFzaA==", "c2FsdA==", "legacy")
    assert users.update_credentials(legacy.id, "new:record", None, "combined")
    updated = users.get(legacy.id)
    assert (updated.password_hash, updated.salt, updated.record_format) == ("new:record", None, "combined")


def test_user_delete_cascades(db_conn, user):
    SecretModel(db_conn).create(user.id, "api", "ZW52")
    FileModel(db_conn).upsert(user.id, "a.txt", "text/plain", 3, b"\x00" * 32)
    AccessLogModel(db_conn).create(user.id, AccessAction.LOGIN)

    assert UserModel(db_conn).delete(user.id)
    assert SecretModel(db_conn).list_by_user(user.id) == []
    assert FileModel(db_conn).list_by_user(user.id) == []
    assert AccessLogModel(db_conn).list_by_user(user.id) == []


def test_user_to_dict_omits_credentials(user):
    data = user.to_dict()
    assert "password_hash" not in data
    assert "salt" not in data
    assert data["username"] == "alice"


# --- SecretModel tests ---


def test_secret_crud(db_conn, user):
    secrets = SecretModel(db_conn)
    secret_id = secrets.create(user.id, "github", "ZW52ZWxvcGU=")

    secret = secrets.get(user.id, secret_id)
    assert isinstance(secret, Secret)
    assert secret.encrypted_value == "ZW52ZWxvcGU="
    assert secret.decrypted_value is None
    assert secrets.get_by_name(user.id, "github").id == secret_id

    assert secrets.update(user.id, secret_id, "gitlab", "bmV3")
    assert secrets.get(user.id, secret_id).key_name == "gitlab"
    assert not secrets.update(user.id, 999, "x", "y")

    assert secrets.delete(user.id, secret_id)
    assert not secrets.delete(user.id, secret_id)
    assert secrets.get(user.id, secret_id) is None


def test_secret_names_unique_per_user(db_conn, user):
    other = UserModel(db_conn).create("bob", "x", None, "combined")
    secrets = SecretModel(db_conn)
    secrets.create(user.id, "api", "YQ==")
    secrets.create(other.id, "api", "Yg==")
    with pytest.raises(ConstraintError):
        secrets.create(user.id, "api", "Yw==")


def test_secret_scoped_to_user(db_conn, user):
    other = UserModel(db_conn).create("bob", "x", None, "combined")
    secret_id = SecretModel(db_conn).create(user.id, "api", "YQ==")
    assert SecretModel(db_conn).get(other.id, secret_id) is None
    assert not SecretModel(db_conn).delete(other.id, secret_id)


def test_secret_list_filters_and_orders(db_conn, user):
    secrets = SecretModel(db_conn)
    first = secrets.create(user.id, "github-token", "YQ==")
    second = secrets.create(user.id, "aws-key", "Yg==")
    third = secrets.create(user.id, "github-backup", "Yw==")

    ids = [s.id for s in secrets.list_by_user(user.id)]
    assert ids == [third, second, first]

    matches = secrets.list_by_user(user.id, "github")
    assert [s.id for s in matches] == [third, first]
    assert secrets.list_by_user(user.id, "nothing") == []


# --- FileModel tests ---


def test_file_upsert_and_get(db_conn, user):
    files = FileModel(db_conn)
    stored = files.upsert(user.id, "notes.txt", "text/plain", 5, b"\x01" * 32)
    assert isinstance(stored, VaultFile)
    assert stored.file_size == 5
    assert stored.encrypted_data == b"\x01" * 32
    assert stored.info() == FileInfo("notes.txt", 5)


def test_file_upsert_replaces_existing(db_conn, user):
    files = FileModel(db_conn)
    first = files.upsert(user.id, "notes.txt", "text/plain", 5, b"\x01" * 32)
    second = files.upsert(user.id, "notes.txt", None, 7, b"\x02" * 48)
    assert second.id == first.id
    assert second.file_size == 7
    assert second.encrypted_data == b"\x02" * 48
    assert len(files.list_by_user(user.id)) == 1


def test_file_list_excludes_envelopes(db_conn, user):
    files = FileModel(db_conn)
    files.upsert(user.id, "a.bin", None, 1, b"\x00" * 32)
    files.upsert(user.id, "b.bin", None, 2, b"\x00" * 32)
    listed = files.list_by_user(user.id)
    assert [f.file_name for f in listed] == ["b.bin", "a.bin"]
    assert all(f.encrypted_data is None for f in listed)


def test_file_delete(db_conn, user):
    files = FileModel(db_conn)
    files.upsert(user.id, "a.bin", None, 1, b"\x00" * 32)
    assert files.delete(user.id, "a.bin")
    assert not files.delete(user.id, "a.bin")
    assert files.get(user.id, "a.bin") is None


# --- AccessLogModel tests ---


def test_access_log_newest_first(db_conn, user):
    logs = AccessLogModel(db_conn)
    logs.create(user.id, AccessAction.LOGIN)
    logs.create(user.id, "ADD", "github", "127.0.0.1")

    entries = logs.list_by_user(user.id)
    assert [e.action for e in entries] == [AccessAction.ADD, AccessAction.LOGIN]
    assert isinstance(entries[0], AccessLog)
    assert entries[0].key_name == "github"
    assert entries[0].ip_address == "127.0.0.1"
    assert entries[0].timestamp is not None
    assert len(logs.list_by_user(user.id, limit=1)) == 1


def test_access_log_requires_existing_user(db_conn):
    with pytest.raises(ConstraintError):
        AccessLogModel(db_conn).create(999, AccessAction.LOGIN)

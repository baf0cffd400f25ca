"""ORM-style helpers for database operations."""

from .connection import DatabaseConnection
from ..core.models import (
    AccessAction,
    access_log_from_row,
    secret_from_row,
    user_from_row,
    vault_file_from_row,
)


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        """Initialize with a DatabaseConnection."""
        self.db = db


class UserModel(BaseModel):
    """DB model for users (the credential store)."""

    def create(self, username, password_hash, salt, record_format):
        """Create a user and return it."""
        query = """
            INSERT INTO users (username, password_hash, salt, record_format)
            VALUES (?, ?, ?, ?)
        """

        user_id = self.db.insert(query, (username, password_hash, salt, record_format))
        return self.get(user_id)

    def get(self, user_id):
        """Get user by ID."""
        row = self.db.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
        return user_from_row(row) if row else None

    def get_by_username(self, username):
        """Get user by username."""
        row = self.db.fetch_one("SELECT * FROM users WHERE username = ?", (username,))
        return user_from_row(row) if row else None

    def touch_last_login(self, user_id):
        """Set last_login to now."""
        query = "UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?"
        return self.db.execute(query, (user_id,)) > 0

    def update_credentials(self, user_id, password_hash, salt, record_format):
        """Replace a user's stored password record."""
        query = """
            UPDATE users SET
                password_hash = ?,
                salt = ?,
                record_format = ?
            WHERE id = ?
        """
        return self.db.execute(query, (password_hash, salt, record_format, user_id)) > 0

    def delete(self, user_id):
        """Delete user by ID (cascades to secrets, files and logs)."""
        return self.db.execute("DELETE FROM users WHERE id = ?", (user_id,)) > 0


class SecretModel(BaseModel):
    """DB model for encrypted text secrets (the secret store)."""

    def create(self, user_id, key_name, secret_value):
        """Insert a secret and return its ID."""
        query = "INSERT INTO vault_data (user_id, key_name, secret_value) VALUES (?, ?, ?)"
        return self.db.insert(query, (user_id, key_name, secret_value))

    def get(self, user_id, secret_id):
        """Get a secret by ID, scoped to the user."""
        query = """
            SELECT id, user_id, key_name, secret_value, created_at, updated_at
            FROM vault_data WHERE user_id = ? AND id = ?
        """
        row = self.db.fetch_one(query, (user_id, secret_id))
        return secret_from_row(row) if row else None

    def get_by_name(self, user_id, key_name):
        """Get a secret by key name, scoped to the user."""
        query = """
            SELECT id, user_id, key_name, secret_value, created_at, updated_at
            FROM vault_data WHERE user_id = ? AND key_name = ?
        """
        row = self.db.fetch_one(query, (user_id, key_name))
        return secret_from_row(row) if row else None

    def list_by_user(self, user_id, query=None):
        """List a user's secrets, newest first; ``query`` filters key names with LIKE."""
        sql = """
            SELECT id, user_id, key_name, secret_value, created_at, updated_at
            FROM vault_data WHERE user_id = ?
        """
        params = [user_id]

        if query:
            sql += " AND key_name LIKE ?"
            params.append(f"%{query}%")

        sql += " ORDER BY updated_at DESC, created_at DESC, id DESC"

        return [secret_from_row(row) for row in self.db.fetch_all(sql, tuple(params))]

    def update(self, user_id, secret_id, key_name, secret_value):
        """Update a secret's name and value; returns False if nothing matched."""
        query = """
            UPDATE vault_data SET
                key_name = ?,
                secret_value = ?
            WHERE user_id = ? AND id = ?
        """
        return self.db.execute(query, (key_name, secret_value, user_id, secret_id)) > 0

    def delete(self, user_id, secret_id):
        """Delete a secret; returns False if nothing matched."""
        query = "DELETE FROM vault_data WHERE user_id = ? AND id = ?"
        return self.db.execute(query, (user_id, secret_id)) > 0


class FileModel(BaseModel):
    """DB model for encrypted files (the file store)."""

    def upsert(self, user_id, file_name, file_type, file_size, encrypted_data):
        """Store a file envelope; an existing file with the same name is replaced."""
        query = """
            INSERT INTO vault_files (user_id, file_name, file_type, file_size, encrypted_data)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (user_id, file_name) DO UPDATE SET
                file_type = excluded.file_type,
                file_size = excluded.file_size,
                encrypted_data = excluded.encrypted_data,
                created_at = CURRENT_TIMESTAMP
        """
        self.db.execute(query, (user_id, file_name, file_type, file_size, encrypted_data))
        return self.get(user_id, file_name)

    def get(self, user_id, file_name):
        """Get a file (including its envelope) by name."""
        query = "SELECT * FROM vault_files WHERE user_id = ? AND file_name = ?"
        row = self.db.fetch_one(query, (user_id, file_name))
        return vault_file_from_row(row) if row else None

    def list_by_user(self, user_id):
        """List a user's files without loading envelopes, newest first."""
        query = """
            SELECT id, user_id, file_name, file_type, file_size, created_at
            FROM vault_files WHERE user_id = ? ORDER BY id DESC
        """
        return [vault_file_from_row(row) for row in self.db.fetch_all(query, (user_id,))]

    def delete(self, user_id, file_name):
        """Delete a file; returns False if nothing matched."""
        query = "DELETE FROM vault_files WHERE user_id = ? AND file_name = ?"
        return self.db.execute(query, (user_id, file_name)) > 0


class AccessLogModel(BaseModel):
    """DB model for the access log."""

    def create(self, user_id, action, key_name=None, ip_address=None):
        """Append an access log entry and return its ID."""
        if isinstance(action, AccessAction):
            action = action.value
        query = "INSERT INTO access_logs (user_id, action, key_name, ip_address) VALUES (?, ?, ?, ?)"
        return self.db.insert(query, (user_id, action, key_name, ip_address))

    def list_by_user(self, user_id, limit=None):
        """List a user's log entries, newest first."""
        query = "SELECT * FROM access_logs WHERE user_id = ? ORDER BY id DESC"
        params = [user_id]
        if limit:
            query += " LIMIT ?"
            params.append(int(limit))
        return [access_log_from_row(row) for row in self.db.fetch_all(query, tuple(params))]

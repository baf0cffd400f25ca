"""
Domain records for users, secrets, stored files and the access log
"""

from datetime import datetime
from enum import Enum


def _parse_timestamp(value):
    # SQLite CURRENT_TIMESTAMP gives "YYYY-MM-DD HH:MM:SS"
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value):
    return value.isoformat() if value is not None else None


class AccessAction(Enum):
    # What a user did, recorded in access_logs
    LOGIN = "LOGIN"
    REGISTER = "REGISTER"
    ADD = "ADD"
    VIEW = "VIEW"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ADD_FILE = "ADD_FILE"
    VIEW_FILE = "VIEW_FILE"
    DELETE_FILE = "DELETE_FILE"


class User:
    """
        A registered vault user and their stored credential columns
    """

    __slots__ = ('id', 'username', 'password_hash', 'salt', 'record_format', 'created_at', 'last_login')

    def __init__(self, id, username, password_hash, salt=None, record_format=None, created_at=None, last_login=None):
        self.id = id
        self.username = username
        self.password_hash = password_hash
        self.salt = salt
        self.record_format = record_format
        self.created_at = _parse_timestamp(created_at)
        self.last_login = _parse_timestamp(last_login)

    def to_dict(self):
        # credential columns are left out on purpose
        return {
            'id': self.id,
            'username': self.username,
            'record_format': self.record_format,
            'created_at': _iso(self.created_at),
            'last_login': _iso(self.last_login),
        }

    def __repr__(self):
        return f"User(id={self.id!r}, username={self.username!r})"

    def __eq__(self, other):
        if not isinstance(other, User):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)


class Secret:
    """
        An encrypted text secret; decrypted_value is only filled on demand and never stored
    """

    __slots__ = ('id', 'user_id', 'key_name', 'encrypted_value', 'decrypted_value', 'created_at', 'updated_at')

    def __init__(self, id=None, user_id=None, key_name="", encrypted_value=None, decrypted_value=None, created_at=None, updated_at=None):
        self.id = id
        self.user_id = user_id
        self.key_name = key_name
        self.encrypted_value = encrypted_value
        self.decrypted_value = decrypted_value
        self.created_at = _parse_timestamp(created_at)
        self.updated_at = _parse_timestamp(updated_at)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'key_name': self.key_name,
            'encrypted_value': self.encrypted_value,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f"Secret(id={self.id!r}, key_name={self.key_name!r})"


class FileInfo:
    """Name and original (pre-encryption) size of a stored file, for listings."""

    __slots__ = ('file_name', 'file_size')

    def __init__(self, file_name, file_size):
        self.file_name = file_name
        self.file_size = file_size

    def __repr__(self):
        return f"FileInfo(file_name={self.file_name!r}, file_size={self.file_size!r})"

    def __eq__(self, other):
        if not isinstance(other, FileInfo):
            return NotImplemented
        return (self.file_name, self.file_size) == (other.file_name, other.file_size)


class VaultFile:
    """
        A stored file: raw envelope bytes plus the original size for display
    """

    __slots__ = ('id', 'user_id', 'file_name', 'file_type', 'file_size', 'encrypted_data', 'created_at')

    def __init__(self, id=None, user_id=None, file_name="", file_type=None, file_size=0, encrypted_data=None, created_at=None):
        self.id = id
        self.user_id = user_id
        self.file_name = file_name
        self.file_type = file_type
        self.file_size = file_size
        self.encrypted_data = encrypted_data
        self.created_at = _parse_timestamp(created_at)

    def info(self):
        return FileInfo(self.file_name, self.file_size)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'file_name': self.file_name,
            'file_type': self.file_type,
            'file_size': self.file_size,
            'encrypted_size': len(self.encrypted_data) if self.encrypted_data is not None else None,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f"VaultFile(id={self.id!r}, file_name={self.file_name!r}, file_size={self.file_size!r})"


class AccessLog:
    """One access_logs row."""

    __slots__ = ('id', 'user_id', 'action', 'key_name', 'timestamp', 'ip_address')

    def __init__(self, user_id, action, key_name=None, id=None, timestamp=None, ip_address=None):
        self.id = id
        self.user_id = user_id
        self.action = action if isinstance(action, AccessAction) else AccessAction(action)
        self.key_name = key_name
        self.timestamp = _parse_timestamp(timestamp)
        self.ip_address = ip_address

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'action': self.action.value,
            'key_name': self.key_name,
            'timestamp': _iso(self.timestamp),
            'ip_address': self.ip_address,
        }

    def __repr__(self):
        return f"AccessLog(action={self.action.value!r}, key_name={self.key_name!r}, timestamp={self.timestamp!r})"


def user_from_row(row):
    """Build a User from a users row dict."""
    return User(
        id=row['id'],
        username=row['username'],
        password_hash=row['password_hash'],
        salt=row.get('salt'),
        record_format=row.get('record_format'),
        created_at=row.get('created_at'),
        last_login=row.get('last_login'),
    )


def secret_from_row(row):
    """Build a Secret from a vault_data row dict."""
    return Secret(
        id=row['id'],
        user_id=row.get('user_id'),
        key_name=row['key_name'],
        encrypted_value=row['secret_value'],
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at'),
    )


def vault_file_from_row(row):
    """Build a VaultFile from a vault_files row dict."""
    data = row.get('encrypted_data')
    return VaultFile(
        id=row['id'],
        user_id=row.get('user_id'),
        file_name=row['file_name'],
        file_type=row.get('file_type'),
        file_size=row['file_size'],
        encrypted_data=bytes(data) if data is not None else None,
        created_at=row.get('created_at'),
    )


def access_log_from_row(row):
    """Build an AccessLog from an access_logs row dict."""
    return AccessLog(
        id=row['id'],
        user_id=row['user_id'],
        action=row['action'],
        key_name=row.get('key_name'),
        timestamp=row.get('timestamp'),
        ip_address=row.get('ip_address'),
    )

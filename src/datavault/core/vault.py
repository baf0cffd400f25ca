"""
DataVault facade: registration, login and per-session secret/file access.

Wiring, for reference:
==============================
 login password
   -> UserService.login_user        (credential store, password hashing)
   -> VaultKeyFile.open             (per-user salt + KDF params + sentinel)
        or legacy global-salt KDF   (vaults created before key files)
   -> EncryptionManager             (one per session, wiped on close)
   -> VaultService / VaultFileService
==============================
All collaborators are handed in explicitly; nothing here is process-global.
"""

import logging
from typing import List, Optional

from ..config import VaultSettings
from ..database.connection import DatabaseConnection
from ..security.cipher import CIPHER_CBC
from ..security.keyfile import VaultKeyFile
from ..security.passwords import RecordFormat
from ..security.session import EncryptionManager
from .file_service import VaultFileService
from .models import AccessAction, FileInfo, Secret, User, VaultFile
from .user_service import UserService
from .vault_service import VaultService

logger = logging.getLogger(__name__)


class VaultSession:
    """An authenticated user's open vault. Closing it wipes the session key."""

    def __init__(self, user: User, encryption: EncryptionManager, db: DatabaseConnection, users: UserService):
        self.user = user
        self.encryption = encryption
        self.users = users
        self.secrets = VaultService(db, encryption)
        self.files = VaultFileService(db, encryption)

    @property
    def closed(self) -> bool:
        return self.encryption.closed

    def log(self, action: AccessAction, key_name: Optional[str] = None) -> None:
        self.users.log_access(self.user.id, action, key_name)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def list_secrets(self, query: Optional[str] = None) -> List[Secret]:
        return self.secrets.get_secrets(self.user.id, query)

    def add_secret(self, key_name: str, value: str) -> int:
        secret_id = self.secrets.add_secret(self.user.id, key_name, value)
        self.log(AccessAction.ADD, key_name)
        return secret_id

    def view_secret(self, secret_id: int) -> Secret:
        secret = self.secrets.get_secret_by_id(self.user.id, secret_id)
        self.log(AccessAction.VIEW, secret.key_name)
        return secret

    def view_secret_by_name(self, key_name: str) -> Secret:
        secret = self.secrets.get_secret_by_name(self.user.id, key_name)
        self.log(AccessAction.VIEW, key_name)
        return secret

    def update_secret(self, secret_id: int, key_name: str, value: str) -> None:
        self.secrets.update_secret(self.user.id, secret_id, key_name, value)
        self.log(AccessAction.UPDATE, key_name)

    def delete_secret(self, secret_id: int) -> None:
        self.secrets.delete_secret(self.user.id, secret_id)
        self.log(AccessAction.DELETE, str(secret_id))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def list_files(self) -> List[FileInfo]:
        return self.files.get_user_files(self.user.id)

    def save_file(self, file_name: str, data: bytes, file_type: Optional[str] = None) -> VaultFile:
        stored = self.files.save_file(self.user.id, file_name, file_type, data)
        self.log(AccessAction.ADD_FILE, file_name)
        return stored

    def open_file(self, file_name: str) -> bytes:
        data = self.files.get_file(self.user.id, file_name)
        self.log(AccessAction.VIEW_FILE, file_name)
        return data

    def delete_file(self, file_name: str) -> None:
        self.files.delete_file(self.user.id, file_name)
        self.log(AccessAction.DELETE_FILE, file_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.encryption.close()
        logger.info("Session closed for user id=%s", self.user.id)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f"VaultSession(user={self.user!r}, closed={self.closed})"


class DataVault:
    """Entry point: owns the database handle and creates sessions."""

    def __init__(
        self,
        settings: Optional[VaultSettings] = None,
        db: Optional[DatabaseConnection] = None,
        upgrade_legacy_records: bool = True,
    ):
        self.settings = settings if settings is not None else VaultSettings()
        self.db = db if db is not None else DatabaseConnection(self.settings.db_path)
        self.db.initialize()
        self.users = UserService(self.db, min_password_length=self.settings.min_password_length)
        self.upgrade_legacy_records = upgrade_legacy_records

    def key_file(self, user: User) -> VaultKeyFile:
        return VaultKeyFile(self.settings.key_file_path(user.id))

    def register(self, username: str, password: str) -> User:
        """
        Create a user and their vault key file.

        Both happen in one transaction: if the key file cannot be written the
        user row is rolled back.
        """
        key_file = None
        manager = None
        try:
            with self.db.transaction():
                user = self.users.register_user(username, password)
                key_file = self.key_file(user)
                manager = key_file.create(
                    password,
                    cipher=self.settings.cipher,
                    kdf=self.settings.kdf,
                    max_file_size=self.settings.max_file_size,
                )
        except Exception:
            # the user row is gone, so must be any key file written for its id
            if manager is not None:
                manager.close()
                key_file.remove()
            raise
        # registration does not open a session
        manager.close()
        self.users.log_access(user.id, AccessAction.REGISTER)
        return user

    def open_encryption(self, user: User, password: str) -> EncryptionManager:
        """Derive the session key for an already authenticated user."""
        key_file = self.key_file(user)
        if key_file.exists():
            return key_file.open(password, max_file_size=self.settings.max_file_size)

        logger.warning("User id=%s has no key file; using legacy key derivation", user.id)
        return EncryptionManager(
            password,
            cipher=CIPHER_CBC,
            max_file_size=self.settings.max_file_size,
        )

    def login(self, username: str, password: str) -> Optional[VaultSession]:
        """Return an open VaultSession, or None if the credentials are wrong."""
        user = self.users.login_user(username, password)
        if user is None:
            return None

        if self.upgrade_legacy_records and user.record_format == RecordFormat.LEGACY.value:
            user = self.users.upgrade_record(user, password)

        encryption = self.open_encryption(user, password)
        session = VaultSession(user, encryption, self.db, self.users)
        session.log(AccessAction.LOGIN)
        return session

    def close(self) -> None:
        self.db.close()

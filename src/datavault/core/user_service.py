"""
Registration, login and access logging over the credential store.
"""

import logging
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.models import AccessLogModel, UserModel
from ..security.passwords import (
    MIN_PASSWORD_LENGTH,
    PasswordRecord,
    check_password_policy,
    generate_salt,
    hash_password,
)
from .exceptions import ConstraintError, StorageError, UserExistsError, UserNotFoundError, ValidationError
from .models import AccessAction, User

logger = logging.getLogger(__name__)


class UserService:
    """Credential store operations. Never touches session keys."""

    def __init__(self, db: DatabaseConnection, min_password_length: int = MIN_PASSWORD_LENGTH):
        self.db = db
        self.user_model = UserModel(db)
        self.access_log_model = AccessLogModel(db)
        self.min_password_length = min_password_length

    def _validate(self, username: str, password: str) -> None:
        if not username or not username.strip():
            raise ValidationError("Username must not be empty")
        check_password_policy(password, self.min_password_length)
        if self.user_model.get_by_username(username) is not None:
            raise UserExistsError(f"Username already exists: {username}")

    def _store(self, username: str, record: PasswordRecord) -> User:
        password_hash, salt, record_format = record.to_storage()
        try:
            user = self.user_model.create(username, password_hash, salt, record_format)
        except ConstraintError as e:
            # lost a race with a concurrent registration
            raise UserExistsError(f"Username already exists: {username}") from e
        logger.info("Registered user %s (id=%s, format=%s)", username, user.id, record_format)
        return user

    def register_user(self, username: str, password: str) -> User:
        """Create a user with a combined ``salt:hash`` password record."""
        self._validate(username, password)
        return self._store(username, PasswordRecord.create(password))

    def register_legacy_user(self, username: str, password: str) -> User:
        """Create a user with a legacy record (bare hash plus separate salt column)."""
        self._validate(username, password)
        salt = generate_salt()
        return self._store(username, PasswordRecord.legacy(hash_password(password, salt), salt))

    def find_by_username(self, username: str) -> Optional[User]:
        return self.user_model.get_by_username(username)

    def get_user(self, user_id: int) -> Optional[User]:
        return self.user_model.get(user_id)

    def verify_credentials(self, user: User, password: str) -> bool:
        record = PasswordRecord.from_storage(user.password_hash, user.salt, user.record_format)
        return record.verify(password)

    def login_user(self, username: str, password: str) -> Optional[User]:
        """Return the user if the password matches (and stamp last_login), else None."""
        user = self.find_by_username(username)
        if user is None:
            logger.info("Login failed: unknown user")
            return None

        if not self.verify_credentials(user, password):
            logger.info("Login failed for user id=%s", user.id)
            return None

        self.user_model.touch_last_login(user.id)
        logger.info("User id=%s logged in", user.id)
        return self.user_model.get(user.id)

    def upgrade_record(self, user: User, password: str) -> User:
        """Rewrite a verified legacy record in the combined format."""
        password_hash, salt, record_format = PasswordRecord.create(password).to_storage()
        if not self.user_model.update_credentials(user.id, password_hash, salt, record_format):
            raise UserNotFoundError(f"User {user.id} not found")
        logger.info("Upgraded password record for user id=%s to %s", user.id, record_format)
        return self.user_model.get(user.id)

    # ===================== Logging =====================

    def log_access(self, user_id: int, action, key_name: Optional[str] = None, ip_address: Optional[str] = None) -> None:
        """Append to the access log. Failures are logged and do not interrupt the caller."""
        action = action if isinstance(action, AccessAction) else AccessAction(action)
        try:
            self.access_log_model.create(user_id, action, key_name, ip_address)
        except StorageError:
            logger.exception("Failed to record %s for user id=%s", action.value, user_id)

    def get_access_log(self, user_id: int, limit: Optional[int] = None):
        return self.access_log_model.list_by_user(user_id, limit=limit)

"""
Secret CRUD over the secret store, encrypting with a session's EncryptionManager.
"""

import logging
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import SecretModel
from ..security.session import EncryptionManager
from .exceptions import ConstraintError, SecretNotFoundError, ValidationError
from .models import Secret

logger = logging.getLogger(__name__)


class VaultService:
    """Text secrets of one session. The store only ever sees base64 envelopes."""

    def __init__(self, db: DatabaseConnection, encryption: EncryptionManager):
        self.db = db
        self.encryption = encryption
        self.secret_model = SecretModel(db)

    def _require_name(self, key_name: str) -> None:
        if not key_name or not key_name.strip():
            raise ValidationError("Key name must not be empty")

    def add_secret(self, user_id: int, key_name: str, plain_value: str) -> int:
        """Encrypt and store a secret; returns its ID."""
        self._require_name(key_name)
        if plain_value is None:
            raise ValidationError("Secret value must not be None")
        encrypted = self.encryption.encrypt(plain_value)
        try:
            secret_id = self.secret_model.create(user_id, key_name, encrypted)
        except ConstraintError as e:
            raise ValidationError(f"A secret named {key_name!r} already exists") from e
        logger.info("Added secret %r for user id=%s", key_name, user_id)
        return secret_id

    def get_secrets(self, user_id: int, query: Optional[str] = None) -> List[Secret]:
        """List secrets (still encrypted), newest first, optionally filtered by name."""
        return self.secret_model.list_by_user(user_id, query)

    def _decrypted(self, secret: Secret) -> Secret:
        secret.decrypted_value = self.encryption.decrypt(secret.encrypted_value)
        return secret

    def get_secret_by_id(self, user_id: int, secret_id: int) -> Secret:
        """Return the secret with ``decrypted_value`` filled in."""
        secret = self.secret_model.get(user_id, secret_id)
        if secret is None:
            raise SecretNotFoundError(f"Secret {secret_id} not found")
        return self._decrypted(secret)

    def get_secret_by_name(self, user_id: int, key_name: str) -> Secret:
        secret = self.secret_model.get_by_name(user_id, key_name)
        if secret is None:
            raise SecretNotFoundError(f"Secret {key_name!r} not found")
        return self._decrypted(secret)

    def update_secret(self, user_id: int, secret_id: int, key_name: str, plain_value: str) -> None:
        """Re-encrypt a secret under a fresh IV and store it with its (possibly new) name."""
        self._require_name(key_name)
        if plain_value is None:
            raise ValidationError("Secret value must not be None")
        encrypted = self.encryption.encrypt(plain_value)
        try:
            updated = self.secret_model.update(user_id, secret_id, key_name, encrypted)
        except ConstraintError as e:
            raise ValidationError(f"A secret named {key_name!r} already exists") from e
        if not updated:
            raise SecretNotFoundError(f"Secret {secret_id} not found")
        logger.info("Updated secret id=%s for user id=%s", secret_id, user_id)

    def delete_secret(self, user_id: int, secret_id: int) -> None:
        if not self.secret_model.delete(user_id, secret_id):
            raise SecretNotFoundError(f"Secret {secret_id} not found")
        logger.info("Deleted secret id=%s for user id=%s", secret_id, user_id)

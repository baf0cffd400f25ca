"""
Encrypted file storage over the file store.
"""

import logging
import mimetypes
from pathlib import Path
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import FileModel
from ..security.session import EncryptionManager
from .exceptions import ValidationError, VaultFileNotFoundError
from .models import FileInfo, VaultFile

logger = logging.getLogger(__name__)


class VaultFileService:
    """Binary files of one session, stored as raw envelopes with their original size."""

    def __init__(self, db: DatabaseConnection, encryption: EncryptionManager):
        self.db = db
        self.encryption = encryption
        self.file_model = FileModel(db)

    def save_file(self, user_id: int, file_name: str, file_type: Optional[str], raw_bytes: bytes) -> VaultFile:
        """
        Encrypt ``raw_bytes`` and store them under ``file_name``.

        Payloads above the session's size limit are rejected before any
        encryption. Saving an existing name replaces the stored file.
        """
        if raw_bytes is None:
            raise ValidationError("No file data")
        if not file_name:
            raise ValidationError("File name must not be empty")

        encrypted = self.encryption.encrypt_file(raw_bytes)
        stored = self.file_model.upsert(user_id, file_name, file_type, len(raw_bytes), encrypted)
        logger.info("Stored file %r for user id=%s (%d bytes)", file_name, user_id, len(raw_bytes))
        return stored

    def save_path(self, user_id: int, path, file_name: Optional[str] = None) -> VaultFile:
        """Read a file from disk and store it; the type is guessed from the name."""
        src = Path(path).expanduser()
        size = src.stat().st_size
        # don't read oversized files into memory just to reject them
        if size > self.encryption.max_file_size:
            raise ValidationError(
                f"File too large: {size} bytes (max {self.encryption.max_file_size} bytes)"
            )
        name = file_name or src.name
        file_type, _ = mimetypes.guess_type(name)
        return self.save_file(user_id, name, file_type, src.read_bytes())

    def get_user_files(self, user_id: int) -> List[FileInfo]:
        """List (file_name, original size) pairs, newest first."""
        return [f.info() for f in self.file_model.list_by_user(user_id)]

    def _require(self, user_id: int, file_name: str) -> VaultFile:
        stored = self.file_model.get(user_id, file_name)
        if stored is None:
            raise VaultFileNotFoundError(f"File {file_name!r} not found")
        return stored

    def get_file(self, user_id: int, file_name: str) -> bytes:
        """Return the decrypted bytes of a stored file."""
        stored = self._require(user_id, file_name)
        return self.encryption.decrypt_file(stored.encrypted_data)

    def get_encrypted_bytes(self, user_id: int, file_name: str) -> bytes:
        """Return the raw stored envelope (IV first), e.g. to show that data is encrypted at rest."""
        return self._require(user_id, file_name).encrypted_data

    def head_hex(self, user_id: int, file_name: str, n: int = 32) -> str:
        """Uppercase hex of the first ``n`` stored envelope bytes, space separated."""
        data = self.get_encrypted_bytes(user_id, file_name)
        return " ".join(f"{b:02X}" for b in data[:n])

    def delete_file(self, user_id: int, file_name: str) -> None:
        if not self.file_model.delete(user_id, file_name):
            raise VaultFileNotFoundError(f"File {file_name!r} not found")
        logger.info("Deleted file %r for user id=%s", file_name, user_id)

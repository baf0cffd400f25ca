"""Envelope policy around a SymmetricCipher.

Text secrets travel as ``base64(envelope)`` ASCII strings so they fit a TEXT
column; files travel as raw envelope bytes. File payloads are size-checked
before any cryptographic work happens.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from ..core.exceptions import DecryptionError, ValidationError
from .cipher import SymmetricCipher

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB


class EnvelopeCodec:
    """Routes text and file payloads to a cipher and applies size/format policy."""

    __slots__ = ("cipher", "max_file_size")

    def __init__(self, cipher: SymmetricCipher, max_file_size: int = MAX_FILE_SIZE):
        self.cipher = cipher
        self.max_file_size = max_file_size

    def check_file_size(self, size: int) -> None:
        if size > self.max_file_size:
            raise ValidationError(
                f"File too large: {size} bytes (max {self.max_file_size} bytes)"
            )

    def seal_text(self, key: bytes, text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        envelope = self.cipher.encrypt_bytes(key, text.encode("utf-8"))
        return base64.b64encode(envelope).decode("ascii")

    def open_text(self, key: bytes, token: Optional[str]) -> Optional[str]:
        if token is None:
            return None
        try:
            envelope = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Text envelope is not valid base64") from e

        plain = self.cipher.decrypt_bytes(key, envelope)
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted text is not valid UTF-8 (wrong key?)") from e

    def seal_file(self, key: bytes, data: Optional[bytes]) -> Optional[bytes]:
        if data is None:
            return None
        # fail fast, before any IV is drawn
        self.check_file_size(len(data))
        envelope = self.cipher.encrypt_bytes(key, bytes(data))
        logger.debug("Sealed file payload: %d -> %d bytes", len(data), len(envelope))
        return envelope

    def open_file(self, key: bytes, envelope: Optional[bytes]) -> Optional[bytes]:
        if envelope is None:
            return None
        return self.cipher.decrypt_bytes(key, bytes(envelope))

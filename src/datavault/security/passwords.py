"""Login password hashing and verification.

Password records come in two on-disk formats:

- combined: ``"<saltB64>:<hashB64>"`` in the password_hash column, no salt column
- legacy:   ``"<hashB64>"`` in the password_hash column plus a separate salt column

New records are always combined. The format is persisted next to the record
(``record_format``) so verification does not have to guess; rows written before
the column existed are classified by looking for the ``:`` delimiter.

This module never touches session keys; see :mod:`datavault.security.kdf`.
"""
from __future__ import annotations

import base64
import binascii
import hmac
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import ValidationError

PASSWORD_ITERATIONS = 100000
PASSWORD_HASH_BYTES = 32
SALT_BYTES = 16
MIN_PASSWORD_LENGTH = 6
RECORD_DELIMITER = ":"


class RecordFormat(Enum):
    COMBINED = "combined"
    LEGACY = "legacy"


def generate_salt() -> str:
    """Return 16 random bytes, base64-encoded."""
    return base64.b64encode(os.urandom(SALT_BYTES)).decode("ascii")


def _pbkdf2(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=PASSWORD_HASH_BYTES,
        salt=salt,
        iterations=PASSWORD_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def hash_password(password: str, salt: str) -> str:
    """Hash ``password`` with a base64 ``salt``; returns the base64 digest (44 chars)."""
    try:
        raw_salt = base64.b64decode(salt, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ValidationError("Salt is not valid base64") from e
    return base64.b64encode(_pbkdf2(password, raw_salt)).decode("ascii")


def hash_password_combined(password: str) -> str:
    """Hash ``password`` with a fresh salt and return ``"salt:hash"``."""
    salt = generate_salt()
    return f"{salt}{RECORD_DELIMITER}{hash_password(password, salt)}"


def _decode_digest(value: str) -> tuple[bytes, bool]:
    # Always hand back a fixed-size buffer so the final compare never short-circuits on length.
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        return bytes(PASSWORD_HASH_BYTES), False
    if len(raw) != PASSWORD_HASH_BYTES:
        return bytes(PASSWORD_HASH_BYTES), False
    return raw, True


def _decode_salt(value: Optional[str]) -> Optional[bytes]:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        return None


@dataclass(frozen=True)
class PasswordRecord:
    """A stored credential: the digest, its salt and which format it is persisted in."""

    format: RecordFormat
    hash: str
    salt: Optional[str]

    @classmethod
    def combined(cls, salt: str, hash: str) -> "PasswordRecord":
        return cls(RecordFormat.COMBINED, hash, salt)

    @classmethod
    def legacy(cls, hash: str, salt: Optional[str]) -> "PasswordRecord":
        return cls(RecordFormat.LEGACY, hash, salt)

    @classmethod
    def create(cls, password: str) -> "PasswordRecord":
        """Hash a new password into a combined record."""
        salt = generate_salt()
        return cls.combined(salt, hash_password(password, salt))

    @classmethod
    def from_storage(
        cls,
        password_hash: str,
        salt: Optional[str] = None,
        record_format: Optional[str] = None,
    ) -> "PasswordRecord":
        """
        Rebuild a record from its persisted columns.

        ``record_format`` is the persisted discriminator; when it is missing
        (rows from older databases) the delimiter decides.
        """
        if record_format is None:
            fmt = RecordFormat.COMBINED if RECORD_DELIMITER in password_hash else RecordFormat.LEGACY
        else:
            try:
                fmt = RecordFormat(record_format)
            except ValueError as e:
                raise ValidationError(f"Unknown password record format: {record_format!r}") from e

        if fmt is RecordFormat.COMBINED:
            embedded_salt, _, digest = password_hash.partition(RECORD_DELIMITER)
            return cls.combined(embedded_salt, digest)
        return cls.legacy(password_hash, salt)

    def to_storage(self) -> tuple[str, Optional[str], str]:
        """Return ``(password_hash, salt, record_format)`` column values."""
        if self.format is RecordFormat.COMBINED:
            return f"{self.salt}{RECORD_DELIMITER}{self.hash}", None, self.format.value
        return self.hash, self.salt, self.format.value

    def verify(self, password: str) -> bool:
        expected, well_formed = _decode_digest(self.hash)
        salt = _decode_salt(self.salt)
        if salt is None:
            return False
        actual = _pbkdf2(password, salt)
        return hmac.compare_digest(actual, expected) and well_formed

    def __repr__(self):
        # digests stay out of reprs and logs
        return f"PasswordRecord(format={self.format.value!r})"


def verify_password(password: str, stored: str, salt: Optional[str] = None) -> bool:
    """
    Verify ``password`` against a stored password_hash value.

    If ``stored`` contains ``:`` it is a combined record and ``salt`` is ignored;
    otherwise it is a legacy digest checked with ``salt``.
    """
    if stored is None:
        return False
    return PasswordRecord.from_storage(stored, salt).verify(password)


def check_password_policy(password: Optional[str], min_length: int = MIN_PASSWORD_LENGTH) -> None:
    """Raise ValidationError if ``password`` is shorter than ``min_length``."""
    if password is None or len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")

"""Security core of DataVault: key derivation, envelope encryption and password hashing.

This package provides:
- PBKDF2 master key derivation (Argon2id optional for vault key files)
- AES-256 envelope ciphers (CBC for existing vaults, GCM for new ones)
- text (base64) and file (raw) envelope policy with a 10 MiB file limit
- a per-session EncryptionManager that wipes its key on close
- login password hashing tolerant of combined and legacy records
"""

from .kdf import generate_salt, derive_key, derive_argon2_key, LEGACY_SALT
from .cipher import AesCbcCipher, AesGcmCipher, get_cipher, CIPHER_CBC, CIPHER_GCM
from .envelope import EnvelopeCodec, MAX_FILE_SIZE
from .session import EncryptionManager, MasterKey, SessionState
from .keyfile import VaultKeyFile
from .passwords import (
    PasswordRecord,
    RecordFormat,
    hash_password,
    hash_password_combined,
    verify_password,
    check_password_policy,
)

__all__ = [
    "generate_salt",
    "derive_key",
    "derive_argon2_key",
    "LEGACY_SALT",
    "AesCbcCipher",
    "AesGcmCipher",
    "get_cipher",
    "CIPHER_CBC",
    "CIPHER_GCM",
    "EnvelopeCodec",
    "MAX_FILE_SIZE",
    "EncryptionManager",
    "MasterKey",
    "SessionState",
    "VaultKeyFile",
    "PasswordRecord",
    "RecordFormat",
    "hash_password",
    "hash_password_combined",
    "verify_password",
    "check_password_policy",
]

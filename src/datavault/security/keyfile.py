"""
Per-vault key material metadata.

A vault key file stores everything needed to re-derive a user's session key
except the password itself: the KDF algorithm and cost parameters, a random
16-byte salt, the envelope cipher, and a MAC sentinel. It never stores the key.

Layout (JSON)::

    {
      "version": 1,
      "kdf": {"algo": "pbkdf2-sha256", "salt": "<hex>", "iterations": 65536},
      "cipher": "aes-256-gcm",
      "sentinel": "<hex HMAC-SHA256(key, b'datavault-master-key')>"
    }

The file lives next to the database, never inside the encrypted data, so the
salt is available before anything can be decrypted.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.exceptions import AuthenticationError, ConfigurationError, StorageError
from .cipher import CIPHER_GCM, get_cipher
from .envelope import MAX_FILE_SIZE
from .kdf import (
    KDF_ARGON2ID,
    KDF_PBKDF2,
    MASTER_KEY_BITS,
    MASTER_KEY_ITERATIONS,
    derive_argon2_key,
    derive_key,
    generate_salt,
    kdf_params_to_dict,
)
from .session import EncryptionManager, MasterKey

logger = logging.getLogger(__name__)

KEYFILE_VERSION = 1
SENTINEL_LABEL = b"datavault-master-key"


def _sentinel(key: bytes) -> bytes:
    return hmac.new(key, SENTINEL_LABEL, hashlib.sha256).digest()


def _derive_from_params(password: str, params: Dict[str, Any]) -> bytes:
    algo = params.get("algo")
    try:
        salt = bytes.fromhex(params["salt"])
    except (KeyError, ValueError, TypeError) as e:
        raise ConfigurationError("Key file has a missing or malformed salt") from e

    if algo == KDF_PBKDF2:
        return derive_key(
            password,
            salt,
            iterations=int(params.get("iterations", MASTER_KEY_ITERATIONS)),
            key_bits=MASTER_KEY_BITS,
        )
    if algo == KDF_ARGON2ID:
        return derive_argon2_key(
            password,
            salt,
            time_cost=int(params.get("time", 3)),
            memory_cost=int(params.get("memory", 65536)),
            parallelism=int(params.get("parallelism", 1)),
            key_len=MASTER_KEY_BITS // 8,
        )
    raise ConfigurationError(f"Unsupported KDF algorithm in key file: {algo!r}")


class VaultKeyFile:
    """Create and open the key file of one vault (one user)."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load_params(self) -> Dict[str, Any]:
        """Return the parsed key file document."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                meta = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Key file not found: {self.path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read key file {self.path}: {e}") from e

        if not isinstance(meta, dict):
            raise ConfigurationError(f"Key file is not a JSON object: {self.path}")
        if meta.get("version") != KEYFILE_VERSION:
            raise ConfigurationError(f"Unsupported key file version: {meta.get('version')!r}")
        if not isinstance(meta.get("kdf"), dict):
            raise ConfigurationError("Key file has a missing or malformed kdf block")
        return meta

    def create(
        self,
        password: str,
        cipher: str = CIPHER_GCM,
        kdf: str = KDF_PBKDF2,
        iterations: int = MASTER_KEY_ITERATIONS,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> EncryptionManager:
        """
        Initialize key material for a new vault and return an open session.

        - generate a random salt
        - derive the master key with the chosen KDF
        - compute a MAC sentinel over a fixed label with the master key
        - persist salt, KDF parameters, cipher and sentinel
        """
        if self.path.exists():
            raise ConfigurationError(f"Key file already exists: {self.path}")
        if not password:
            raise ConfigurationError("A master password is required to create a key file")
        get_cipher(cipher)

        salt = generate_salt()
        params = kdf_params_to_dict(kdf, salt, iterations=iterations)
        key = _derive_from_params(password, params)

        meta = {
            "version": KEYFILE_VERSION,
            "kdf": params,
            "cipher": cipher,
            "sentinel": _sentinel(key).hex(),
        }

        self._write(meta)

        logger.info("Created vault key file %s (kdf=%s, cipher=%s)", self.path.name, kdf, cipher)
        return EncryptionManager.from_key(MasterKey(key), cipher=cipher, max_file_size=max_file_size)

    def _write(self, meta: Dict[str, Any]) -> None:
        # write next to the target and rename, so a failed write leaves no key file behind
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, suffix=".tmp", delete=False
            ) as tmpf:
                tmp_path = Path(tmpf.name)
                json.dump(meta, tmpf)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write key file {self.path}: {e}") from e

    def remove(self) -> None:
        """Delete the key file, e.g. when the vault it belongs to was never created."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove key file {self.path}: {e}") from e

    def open(self, password: str, max_file_size: int = MAX_FILE_SIZE) -> EncryptionManager:
        """
        Re-derive the master key from ``password`` and the stored parameters.

        Raises AuthenticationError if the sentinel does not match, i.e. the
        password does not belong to this vault.
        """
        if not password:
            raise ConfigurationError("A master password is required to open a key file")
        meta = self.load_params()
        key = _derive_from_params(password, meta["kdf"])

        expected_hex: Optional[str] = meta.get("sentinel")
        if not expected_hex:
            raise ConfigurationError("Key file has no sentinel")
        try:
            expected = bytes.fromhex(expected_hex)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("Key file has a malformed sentinel") from e
        if not hmac.compare_digest(_sentinel(key), expected):
            raise AuthenticationError("Invalid master password for existing key material")

        cipher = meta.get("cipher", CIPHER_GCM)
        return EncryptionManager.from_key(MasterKey(key), cipher=cipher, max_file_size=max_file_size)

"""Key derivation for DataVault session keys."""
import os
from typing import Dict, Optional

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import ConfigurationError

MASTER_KEY_ITERATIONS = 65536
MASTER_KEY_BITS = 256

# Application-wide salt of vaults created before per-vault key files existed.
# Only used to reopen such vaults; new vaults get a random salt (see keyfile.py).
LEGACY_SALT = b"a9v5n38s"

KDF_PBKDF2 = "pbkdf2-sha256"
KDF_ARGON2ID = "argon2id"


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def _encode_password(password) -> bytes:
    if password is None:
        raise ConfigurationError("No password supplied for key derivation")
    if isinstance(password, str):
        return password.encode("utf-8")
    return bytes(password)


def derive_key(
    password: bytes | str,
    salt: bytes,
    iterations: int = MASTER_KEY_ITERATIONS,
    key_bits: int = MASTER_KEY_BITS,
) -> bytes:
    """
    Derive a symmetric key from a password using PBKDF2-HMAC-SHA256.

    The result is deterministic for a given (password, salt, iterations,
    key_bits) and its cost depends only on ``iterations``.
    Returns ``key_bits // 8`` raw key bytes.
    """
    secret = _encode_password(password)
    if not salt:
        raise ConfigurationError("Key derivation requires a non-empty salt")
    if iterations < 1:
        raise ConfigurationError(f"Invalid iteration count: {iterations}")
    if key_bits <= 0 or key_bits % 8:
        raise ConfigurationError(f"Key size must be a positive multiple of 8 bits, got {key_bits}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_bits // 8,
        salt=bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(secret)


def derive_argon2_key(
    password: bytes | str,
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = 32,
) -> bytes:
    """
    Derive a key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    secret = _encode_password(password)
    if not salt:
        raise ConfigurationError("Key derivation requires a non-empty salt")

    return hash_secret_raw(
        secret=secret,
        salt=bytes(salt),
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )


def kdf_params_to_dict(
    algo: str,
    salt: bytes,
    iterations: Optional[int] = None,
    time_cost: Optional[int] = None,
    memory_cost: Optional[int] = None,
    parallelism: Optional[int] = None,
) -> Dict:
    if algo == KDF_PBKDF2:
        return {
            "algo": algo,
            "salt": salt.hex(),
            "iterations": iterations if iterations is not None else MASTER_KEY_ITERATIONS,
        }
    if algo == KDF_ARGON2ID:
        return {
            "algo": algo,
            "salt": salt.hex(),
            "time": time_cost if time_cost is not None else 3,
            "memory": memory_cost if memory_cost is not None else 65536,
            "parallelism": parallelism if parallelism is not None else 1,
        }
    raise ConfigurationError(f"Unsupported KDF algorithm: {algo}")

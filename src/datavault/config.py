"""Runtime settings for DataVault.

Settings come from constructor arguments or from the environment:

    DATAVAULT_HOME                 base directory (default ~/.datavault)
    DATAVAULT_DB_PATH              SQLite file (default <home>/datavault.db)
    DATAVAULT_KEYS_DIR             vault key files (default <home>/keys)
    DATAVAULT_CIPHER               cipher for new vaults (aes-256-gcm | aes-256-cbc)
    DATAVAULT_KDF                  KDF for new vaults (pbkdf2-sha256 | argon2id)
    DATAVAULT_MIN_PASSWORD_LENGTH  registration policy (default 6)
    DATAVAULT_MAX_FILE_SIZE        file payload limit in bytes (default 10 MiB)
    DATAVAULT_LOG_LEVEL            logging level name (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .core.exceptions import ConfigurationError
from .security.cipher import CIPHER_GCM, available_ciphers
from .security.envelope import MAX_FILE_SIZE
from .security.kdf import KDF_ARGON2ID, KDF_PBKDF2
from .security.passwords import MIN_PASSWORD_LENGTH

ENV_PREFIX = "DATAVAULT_"

_KDFS = (KDF_PBKDF2, KDF_ARGON2ID)
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_home() -> Path:
    return Path.home() / ".datavault"


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


@dataclass
class VaultSettings:
    """Validated vault configuration."""

    db_path: Path = field(default_factory=lambda: _default_home() / "datavault.db")
    keys_dir: Path = field(default_factory=lambda: _default_home() / "keys")
    cipher: str = CIPHER_GCM
    kdf: str = KDF_PBKDF2
    min_password_length: int = MIN_PASSWORD_LENGTH
    max_file_size: int = MAX_FILE_SIZE
    log_level: str = "INFO"

    def __post_init__(self):
        self.db_path = Path(self.db_path).expanduser()
        self.keys_dir = Path(self.keys_dir).expanduser()
        self.log_level = str(self.log_level).upper()

        if self.cipher not in available_ciphers():
            raise ConfigurationError(
                f"Unsupported cipher: {self.cipher!r} (available: {', '.join(available_ciphers())})"
            )
        if self.kdf not in _KDFS:
            raise ConfigurationError(f"Unsupported KDF: {self.kdf!r}")
        if self.min_password_length < 1:
            raise ConfigurationError("min_password_length must be at least 1")
        if self.max_file_size < 0:
            raise ConfigurationError("max_file_size must not be negative")
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level!r}")

    def key_file_path(self, user_id: int) -> Path:
        """Location of a user's vault key file."""
        return self.keys_dir / f"user-{user_id}.json"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "VaultSettings":
        """Create VaultSettings from ``DATAVAULT_*`` variables (``os.environ`` by default)."""
        env = os.environ if env is None else env

        home = Path(env.get(ENV_PREFIX + "HOME") or _default_home())
        return cls(
            db_path=env.get(ENV_PREFIX + "DB_PATH") or home / "datavault.db",
            keys_dir=env.get(ENV_PREFIX + "KEYS_DIR") or home / "keys",
            cipher=env.get(ENV_PREFIX + "CIPHER") or CIPHER_GCM,
            kdf=env.get(ENV_PREFIX + "KDF") or KDF_PBKDF2,
            min_password_length=_int_setting(env, "MIN_PASSWORD_LENGTH", MIN_PASSWORD_LENGTH),
            max_file_size=_int_setting(env, "MAX_FILE_SIZE", MAX_FILE_SIZE),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL") or "INFO",
        )

"""Per-session encryption facade holding the derived master key.

One EncryptionManager is created per authenticated session. It owns exactly
one MasterKey and moves through

    KEY_DERIVED -> ACTIVE -> DISPOSED

Construction derives (or adopts) the key, the first encrypt/decrypt call makes
the session ACTIVE, and close() (or leaving a ``with`` block, also on error)
wipes the key buffer and disposes the session. A disposed manager refuses all
operations; open a new one instead.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

from ..core.exceptions import ConfigurationError, SessionClosedError
from .cipher import CIPHER_CBC, KEY_LENGTH, get_cipher
from .envelope import MAX_FILE_SIZE, EnvelopeCodec
from .kdf import LEGACY_SALT, MASTER_KEY_BITS, MASTER_KEY_ITERATIONS, derive_key

logger = logging.getLogger(__name__)


class SessionState(Enum):
    KEY_DERIVED = "key_derived"
    ACTIVE = "active"
    DISPOSED = "disposed"


class MasterKey:
    """Mutable key buffer that is overwritten with zeros on wipe()."""

    __slots__ = ("_buf", "_wiped")

    def __init__(self, key: bytes | bytearray):
        if len(key) != KEY_LENGTH:
            raise ConfigurationError(f"Master key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._buf = bytearray(key)
        self._wiped = False

    @property
    def wiped(self) -> bool:
        return self._wiped

    def reveal(self) -> bytes:
        """Return the key bytes for a single cipher call."""
        if self._wiped:
            raise SessionClosedError("Master key has been wiped")
        return bytes(self._buf)

    def wipe(self) -> None:
        """Overwrite the key buffer (best-effort; copies made by reveal() are not tracked)."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._wiped = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.wipe()

    def __len__(self):
        return len(self._buf)

    def __repr__(self):
        return f"MasterKey(wiped={self._wiped})"


class EncryptionManager:
    """
    Binds one master key to a login session and exposes encrypt/decrypt.

    Text helpers return base64 strings, file helpers return raw envelope
    bytes; ``None`` passes straight through both. Calls are independent and
    safe to make from several threads.
    """

    def __init__(
        self,
        master_password: Optional[str] = None,
        *,
        salt: bytes = LEGACY_SALT,
        iterations: int = MASTER_KEY_ITERATIONS,
        cipher: str = CIPHER_CBC,
        max_file_size: int = MAX_FILE_SIZE,
        master_key: Optional[MasterKey] = None,
    ):
        if master_key is None:
            if not master_password:
                raise ConfigurationError("A master password is required to derive the session key")
            master_key = MasterKey(derive_key(master_password, salt, iterations, MASTER_KEY_BITS))

        self._key = master_key
        self._codec = EnvelopeCodec(get_cipher(cipher), max_file_size=max_file_size)
        self._state = SessionState.KEY_DERIVED
        self._state_lock = threading.Lock()
        logger.debug("Encryption session created (cipher=%s)", cipher)

    @classmethod
    def from_key(
        cls,
        master_key: MasterKey | bytes,
        cipher: str = CIPHER_CBC,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> "EncryptionManager":
        """Build a manager around a key derived elsewhere (e.g. a vault key file)."""
        if not isinstance(master_key, MasterKey):
            master_key = MasterKey(master_key)
        return cls(cipher=cipher, max_file_size=max_file_size, master_key=master_key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cipher_name(self) -> str:
        return self._codec.cipher.name

    @property
    def max_file_size(self) -> int:
        return self._codec.max_file_size

    @property
    def closed(self) -> bool:
        return self._state is SessionState.DISPOSED

    def _session_key(self) -> bytes:
        with self._state_lock:
            if self._state is SessionState.DISPOSED:
                raise SessionClosedError("Encryption session has been closed")
            if self._state is SessionState.KEY_DERIVED:
                self._state = SessionState.ACTIVE
            return self._key.reveal()

    def close(self) -> None:
        """Wipe the key and dispose the session. Safe to call more than once."""
        with self._state_lock:
            if self._state is SessionState.DISPOSED:
                return
            try:
                self._key.wipe()
            finally:
                self._state = SessionState.DISPOSED
        logger.debug("Encryption session disposed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Byte-level encryption
    # ------------------------------------------------------------------

    def encrypt_bytes(self, data: bytes) -> bytes:
        """Encrypt raw bytes; returns the envelope (no size policy applied)."""
        return self._codec.cipher.encrypt_bytes(self._session_key(), bytes(data))

    def decrypt_bytes(self, envelope: bytes) -> bytes:
        return self._codec.cipher.decrypt_bytes(self._session_key(), bytes(envelope))

    # ------------------------------------------------------------------
    # Text secrets
    # ------------------------------------------------------------------

    def encrypt(self, plain: Optional[str]) -> Optional[str]:
        """Encrypt a text secret and return ``base64(envelope)``."""
        if plain is None:
            return None
        return self._codec.seal_text(self._session_key(), plain)

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        """Decrypt a ``base64(envelope)`` text secret."""
        if token is None:
            return None
        return self._codec.open_text(self._session_key(), token)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def encrypt_file(self, data: Optional[bytes]) -> Optional[bytes]:
        """Encrypt file bytes into a raw envelope; rejects payloads over the size limit."""
        if data is None:
            return None
        # size check happens before the key is even touched
        self._codec.check_file_size(len(data))
        return self._codec.seal_file(self._session_key(), data)

    def decrypt_file(self, envelope: Optional[bytes]) -> Optional[bytes]:
        if envelope is None:
            return None
        return self._codec.open_file(self._session_key(), envelope)

    def __repr__(self):
        return f"EncryptionManager(cipher={self.cipher_name!r}, state={self._state.value!r})"

"""AES-256 envelope ciphers.

Two envelope layouts are supported:

- ``aes-256-cbc``: ``IV[16] || ciphertext`` with PKCS7 padding. This is the
  layout of every envelope written by older vaults and carries no integrity
  tag, so a wrong key and a corrupted envelope look the same (bad padding or
  garbage plaintext).
- ``aes-256-gcm``: ``nonce[12] || ciphertext || tag[16]``. Tampering and wrong
  keys are detected and reported as :class:`AuthenticationError`.

Ciphers are stateless: the key is passed to every call and each call draws a
fresh IV/nonce from ``os.urandom``, so one instance can be shared between
threads.
"""
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DecryptionError,
    EncryptionError,
)

KEY_LENGTH = 32  # AES-256
BLOCK_SIZE = 16
IV_SIZE = 16
GCM_NONCE_SIZE = 12
GCM_TAG_SIZE = 16

# An envelope shorter than this can never be valid, whatever the cipher.
MIN_ENVELOPE_SIZE = 16

CIPHER_CBC = "aes-256-cbc"
CIPHER_GCM = "aes-256-gcm"


def _random_bytes(length: int) -> bytes:
    try:
        return os.urandom(length)
    except (OSError, NotImplementedError) as e:
        raise EncryptionError(f"Secure random source unavailable: {e}") from e


def _check_envelope(envelope: bytes, minimum: int) -> None:
    if envelope is None or len(envelope) < minimum:
        size = 0 if envelope is None else len(envelope)
        raise DecryptionError(f"Envelope too short: {size} bytes (minimum {minimum})")


class SymmetricCipher:
    """Base class for envelope ciphers keyed by a 32-byte session key."""

    name = ""

    def encrypt_bytes(self, key: bytes, plain: bytes) -> bytes:
        raise NotImplementedError

    def decrypt_bytes(self, key: bytes, envelope: bytes) -> bytes:
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"


class AesCbcCipher(SymmetricCipher):
    """AES-256-CBC with PKCS7 padding and a random 16-byte IV prefix."""

    name = CIPHER_CBC

    def encrypt_bytes(self, key: bytes, plain: bytes) -> bytes:
        iv = _random_bytes(IV_SIZE)
        try:
            encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        except ValueError as e:
            raise EncryptionError(f"Cipher initialization failed: {e}") from e

        padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
        padded = padder.update(plain) + padder.finalize()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt_bytes(self, key: bytes, envelope: bytes) -> bytes:
        _check_envelope(envelope, MIN_ENVELOPE_SIZE)
        iv, ct = envelope[:IV_SIZE], envelope[IV_SIZE:]
        try:
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ct) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            # covers truncated blocks, bad padding and (indistinguishably) a wrong key
            raise DecryptionError("Decryption failed: invalid envelope or wrong key") from e


class AesGcmCipher(SymmetricCipher):
    """AES-256-GCM with a random 96-bit nonce prefix and a 128-bit tag suffix."""

    name = CIPHER_GCM

    def encrypt_bytes(self, key: bytes, plain: bytes) -> bytes:
        nonce = _random_bytes(GCM_NONCE_SIZE)
        try:
            aead = AESGCM(key)
        except ValueError as e:
            raise EncryptionError(f"Cipher initialization failed: {e}") from e
        return nonce + aead.encrypt(nonce, plain, None)

    def decrypt_bytes(self, key: bytes, envelope: bytes) -> bytes:
        _check_envelope(envelope, GCM_NONCE_SIZE + GCM_TAG_SIZE)
        nonce, ct = envelope[:GCM_NONCE_SIZE], envelope[GCM_NONCE_SIZE:]
        try:
            aead = AESGCM(key)
        except ValueError as e:
            raise DecryptionError(f"Cipher initialization failed: {e}") from e
        try:
            return aead.decrypt(nonce, ct, None)
        except InvalidTag as e:
            raise AuthenticationError("Envelope authentication failed (tampered data or wrong key)") from e


_CIPHERS = {
    CIPHER_CBC: AesCbcCipher,
    CIPHER_GCM: AesGcmCipher,
}


def available_ciphers() -> list[str]:
    return sorted(_CIPHERS)


def get_cipher(name: str) -> SymmetricCipher:
    """Return a cipher instance by name, e.g. ``"aes-256-gcm"``."""
    try:
        return _CIPHERS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unsupported cipher: {name!r} (available: {', '.join(available_ciphers())})"
        ) from None

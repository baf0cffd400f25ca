"""
Exceptions for DataVault
Everything raised by the vault derives from VaultError so callers have a general error catcher
"""


class VaultError(Exception):
    # general container for errors
    pass


class ConfigurationError(VaultError):
    # raised when key-derivation parameters or settings are missing or invalid
    pass


class EncryptionError(VaultError):
    # raised on random-source or cipher-initialization failure while encrypting
    pass


class DecryptionError(VaultError):
    # raised on short envelopes, bad padding or a wrong key (indistinguishable)
    pass


class AuthenticationError(DecryptionError):
    # raised when an authenticated envelope or key sentinel fails verification
    pass


class ValidationError(VaultError):
    # raised when a payload or password violates policy (size, length)
    pass


class SessionClosedError(VaultError):
    # raised when an encryption session is used after it was disposed
    pass


class StorageError(VaultError):
    # raised if persistence fails in some way
    pass


class UserExistsError(StorageError):
    # raised when registering an existing username
    pass


class UserNotFoundError(StorageError):
    # raised when the user DNE in the DB
    pass


class SecretNotFoundError(StorageError):
    # raised when a secret id or key name DNE for the user
    pass


class VaultFileNotFoundError(StorageError):
    # raised when a stored file DNE for the user
    pass


class ConstraintError(StorageError):
    # raised when a write violates a UNIQUE or FOREIGN KEY constraint
    pass

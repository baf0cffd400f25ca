"""DataVault: encrypted storage core for text secrets and files."""

__version__ = "0.1.0"

from .core.vault import DataVault, VaultSession
from .config import VaultSettings
from .security.session import EncryptionManager
from .logging_config import configure_logging

__all__ = ["DataVault", "VaultSession", "VaultSettings", "EncryptionManager", "configure_logging", "__version__"]

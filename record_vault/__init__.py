"""Record Vault — encrypted single-document storage per key."""
from .version import __version__
from .exceptions import (
    VaultError,
    CipherError,
    NotInitialized,
    AlreadyInitialized,
    MalformedInput,
    AuthenticationFailure,
    InvalidEncoding,
    InvalidInput,
    StorageError,
    InternalError,
)

__all__ = [
    "__version__",
    "VaultError",
    "CipherError",
    "NotInitialized",
    "AlreadyInitialized",
    "MalformedInput",
    "AuthenticationFailure",
    "InvalidEncoding",
    "InvalidInput",
    "StorageError",
    "InternalError",
]

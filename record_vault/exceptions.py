"""
Vault Exceptions — error taxonomy shared by cipher, store and handler layers.

Security Note:
    Exception messages must never contain plaintext, ciphertext or key
    material. Causes are chained (``raise ... from err``) so operators can
    inspect them in logs without exposing them to callers.
"""


class VaultError(Exception):
    """Base class for every error raised by record_vault."""


class CipherError(VaultError):
    """Base class for cipher lifecycle and decryption failures."""


class NotInitialized(CipherError):
    """A seal/open was attempted before the key was set."""


class AlreadyInitialized(CipherError):
    """The key was set a second time."""


class MalformedInput(CipherError):
    """Sealed blob is shorter than nonce + tag."""


class AuthenticationFailure(CipherError):
    """Authentication tag did not verify (tampered data or wrong key)."""


class InvalidEncoding(CipherError):
    """Decrypted bytes are not valid UTF-8 text."""


class InvalidInput(VaultError):
    """Caller-supplied request violates a precondition."""


class StorageError(VaultError):
    """Underlying persistence failure."""


class InternalError(VaultError):
    """Opaque failure surfaced to callers at the request boundary."""

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)

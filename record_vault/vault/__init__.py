"""Record Vault core — cipher, record store and request handler.

Security Note (Threat Model):
    Documents are decrypted in process memory while a fetch is served,
    and the key lives in process memory for the lifetime of the process.
    A memory dump of the application process could expose both.
    This is an accepted limitation — mitigation requires HSM/secure
    enclave integration which is out of scope.
"""

from .crypto import RecordCipher, SecretKey
from .store import Record, RecordStore
from .service import RecordService
from .models import FetchRequest, FetchResponse, StoreRequest, StoreResponse
from .config import VaultConfig, generate_encryption_key

__all__ = [
    "RecordCipher",
    "SecretKey",
    "Record",
    "RecordStore",
    "RecordService",
    "FetchRequest",
    "FetchResponse",
    "StoreRequest",
    "StoreResponse",
    "VaultConfig",
    "generate_encryption_key",
]

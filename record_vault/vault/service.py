"""
RecordService — request handler composing the cipher and the record store.

Provides the two operations exposed to callers:
- ``store(request)`` — validate, seal and upsert a JSON document
- ``fetch(request)`` — load, open and return a JSON document

Validation happens before any cipher or storage call. Cipher and storage
failures are logged with their cause and re-raised as an opaque
``InternalError`` so callers never learn which layer failed or why.

Security Note:
    Never log documents, sealed blobs or key material. Only log record
    keys, operations and exception types.
"""
import logging

import orjson

from ..exceptions import (
    CipherError,
    InternalError,
    InvalidInput,
    StorageError,
)
from .crypto import RecordCipher
from .models import FetchRequest, FetchResponse, StoreRequest, StoreResponse
from .store import RecordStore

logger = logging.getLogger("record_vault.service")


class RecordService:
    """Encrypts documents on the way in and decrypts them on the way out."""

    def __init__(self, cipher: RecordCipher, store: RecordStore):
        self._cipher = cipher
        self._store = store

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key:
            raise InvalidInput("Key cannot be empty")

    @staticmethod
    def _validate_document(document: str) -> None:
        if not document:
            raise InvalidInput("Document cannot be empty")
        try:
            orjson.loads(document)
        except orjson.JSONDecodeError as err:
            raise InvalidInput(f"Invalid JSON format: {err}") from err

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def store(self, request: StoreRequest) -> StoreResponse:
        """Seal ``request.document`` and persist it under ``request.key``.

        Raises:
            InvalidInput: Empty key, empty document or malformed JSON.
            InternalError: Encryption or storage failed.
        """
        self._validate_key(request.key)
        self._validate_document(request.document)

        try:
            sealed = self._cipher.seal(request.document)
        except CipherError as err:
            logger.error(
                "Encryption failed for key=%s: %s", request.key, type(err).__name__,
            )
            raise InternalError() from err

        try:
            await self._store.put(request.key, sealed)
        except StorageError as err:
            logger.error("Database error storing key=%s: %s", request.key, err)
            raise InternalError() from err

        logger.info("Record stored: key=%s", request.key)
        return StoreResponse(
            accepted=True,
            message=f"Record stored successfully for key: {request.key}",
        )

    async def fetch(self, request: FetchRequest) -> FetchResponse:
        """Load and decrypt the document stored under ``request.key``.

        Returns:
            FetchResponse with ``found=False`` when the key was never stored.

        Raises:
            InvalidInput: Empty key.
            InternalError: Storage or decryption failed.
        """
        self._validate_key(request.key)

        try:
            sealed = await self._store.get(request.key)
        except StorageError as err:
            logger.error("Database error fetching key=%s: %s", request.key, err)
            raise InternalError() from err

        if sealed is None:
            return FetchResponse(
                found=False,
                message=f"No record found for key: {request.key}",
            )

        try:
            document = self._cipher.open(sealed)
        except CipherError as err:
            logger.error(
                "Decryption failed for key=%s: %s", request.key, type(err).__name__,
            )
            raise InternalError() from err

        return FetchResponse(found=True, document=document)

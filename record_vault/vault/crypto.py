"""
Vault Crypto Core — Key construction and authenticated encryption of records.

Sealed blob format: [nonce 12B][encrypted_payload + tag 16B]

The key is owned by a ``RecordCipher`` instance built once at process start
and handed to whatever needs it; there is no module-level key.

Security Note:
    Never log plaintext, ciphertext or key values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import (
    NotInitialized,
    AlreadyInitialized,
    MalformedInput,
    AuthenticationFailure,
    InvalidEncoding,
)

logger = logging.getLogger("record_vault.crypto")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM / Poly1305 tag
KEY_LENGTH = 32  # AES-256
MIN_SEALED_SIZE = NONCE_SIZE + TAG_SIZE

HKDF_CONTEXT = "record-vault"

CIPHER_BACKENDS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}
KEY_DERIVATIONS = ("pad", "hkdf")


def get_cipher_cls(backend: str = "aesgcm") -> type:
    """Return the AEAD cipher class for a backend name."""
    try:
        return CIPHER_BACKENDS[backend.lower()]
    except KeyError:
        raise ValueError(f"Unsupported cipher backend: {backend}") from None


# ---------------------------------------------------------------------------
# Key construction
# ---------------------------------------------------------------------------

def pad_key(seed: bytes) -> bytes:
    """Zero-pad or truncate seed bytes to exactly KEY_LENGTH bytes.

    No key derivation is applied; the caller is responsible for supplying
    long, random seed material.
    """
    return seed[:KEY_LENGTH].ljust(KEY_LENGTH, b"\x00")


def derive_key(seed: bytes, context: str = HKDF_CONTEXT) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material.
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


@dataclass(frozen=True)
class SecretKey:
    """Immutable 32-byte symmetric key."""

    material: bytes = field(repr=False)

    def __post_init__(self):
        if len(self.material) != KEY_LENGTH:
            raise ValueError(
                f"Secret key must be exactly {KEY_LENGTH} bytes, "
                f"got {len(self.material)}"
            )

    @classmethod
    def from_seed(
        cls,
        seed: Union[bytes, str],
        derivation: str = "pad",
    ) -> "SecretKey":
        """Build a key from operator-supplied seed material.

        Args:
            seed: Raw seed; str values are UTF-8 encoded.
            derivation: ``"pad"`` (zero-pad/truncate) or ``"hkdf"``.
        """
        if isinstance(seed, str):
            seed = seed.encode("utf-8")
        if derivation == "pad":
            return cls(pad_key(seed))
        if derivation == "hkdf":
            return cls(derive_key(seed))
        raise ValueError(f"Unsupported key derivation: {derivation}")

    @classmethod
    def generate(cls) -> "SecretKey":
        """Generate a random key from the OS CSPRNG."""
        return cls(os.urandom(KEY_LENGTH))


# ---------------------------------------------------------------------------
# Record cipher
# ---------------------------------------------------------------------------

class RecordCipher:
    """Seals and opens record payloads under a single owned key.

    The key is installed once through ``initialize()`` and is immutable
    afterwards. ``seal``/``open`` hold no other state, so one instance is
    shared by all concurrent requests.
    """

    def __init__(self, backend: str = "aesgcm"):
        self._cipher_cls = get_cipher_cls(backend)
        self._backend = backend.lower()
        self._key: Optional[SecretKey] = None
        self._aead = None
        self._init_lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"<RecordCipher backend={self._backend} "
            f"initialized={self.initialized}>"
        )

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def initialized(self) -> bool:
        return self._key is not None

    def initialize(
        self,
        seed: Optional[Union[bytes, str]] = None,
        derivation: str = "pad",
    ) -> None:
        """Install the key. Must be called exactly once.

        Args:
            seed: Seed material. When None, a random key is generated and
                anything sealed with it is lost when the process exits.
            derivation: How the seed becomes a key (``"pad"`` or ``"hkdf"``).

        Raises:
            AlreadyInitialized: If a key was already installed.
        """
        if seed is None:
            key = SecretKey.generate()
        else:
            key = SecretKey.from_seed(seed, derivation)
        with self._init_lock:
            if self._key is not None:
                raise AlreadyInitialized("Encryption key already initialized")
            self._aead = self._cipher_cls(key.material)
            self._key = key
        logger.debug(
            "Record cipher initialized: backend=%s source=%s",
            self._backend, "seed" if seed is not None else "random",
        )

    def _get_aead(self):
        if self._aead is None:
            raise NotInitialized(
                "Encryption key not initialized. Call initialize() first"
            )
        return self._aead

    def seal(self, plaintext: Union[bytes, str]) -> bytes:
        """Encrypt plaintext under a fresh random nonce.

        Returns:
            Sealed blob ``nonce || ciphertext || tag``.

        Raises:
            NotInitialized: If no key is installed.
        """
        aead = self._get_aead()
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        return nonce + aead.encrypt(nonce, plaintext, None)

    def open(self, blob: bytes) -> str:
        """Verify and decrypt a sealed blob.

        Raises:
            MalformedInput: If blob is shorter than nonce + tag.
            NotInitialized: If no key is installed.
            AuthenticationFailure: If the tag does not verify.
            InvalidEncoding: If the plaintext is not valid UTF-8.
        """
        if len(blob) < MIN_SEALED_SIZE:
            raise MalformedInput(
                f"Sealed blob too short: {len(blob)} bytes "
                f"(minimum {MIN_SEALED_SIZE})"
            )
        aead = self._get_aead()
        nonce = bytes(blob[:NONCE_SIZE])
        ct = bytes(blob[NONCE_SIZE:])
        try:
            plaintext = aead.decrypt(nonce, ct, None)
        except InvalidTag as err:
            raise AuthenticationFailure("Decryption failed") from err
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise InvalidEncoding("Decrypted data is not valid UTF-8") from err

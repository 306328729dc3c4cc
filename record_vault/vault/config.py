"""
Vault Configuration — Process secret loading and validated settings.

Reads settings from environment variables:
    DATABASE_URL   = sqlite://records.db
    ENCRYPTION_KEY = <seed material, padded/truncated to 32 bytes>
    CIPHER_BACKEND = aesgcm | chacha20
    KEY_DERIVATION = pad | hkdf
    HOST, PORT, POOL_SIZE, LOG_LEVEL

Security Note:
    Never log key material. Only log whether a key was supplied.
"""
import os
import base64
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .crypto import CIPHER_BACKENDS, KEY_DERIVATIONS

logger = logging.getLogger("record_vault.config")

DEFAULT_DATABASE_URL = "sqlite://records.db"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def generate_encryption_key() -> str:
    """Generate a random 32-byte key and return as base64 string.

    This is a utility for operators to generate a value for ENCRYPTION_KEY.
    Its base64 text is longer than 32 bytes, so only the first 32 characters
    become key material under the ``pad`` derivation; use ``hkdf`` to let
    the whole string contribute.

    Returns:
        Base64-encoded 32-byte key string.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated record vault configuration."""

    database_url: str = Field(default=DEFAULT_DATABASE_URL, min_length=1)
    encryption_key: Optional[str] = Field(default=None, repr=False)
    cipher_backend: str = Field(default="aesgcm")
    key_derivation: str = Field(default="pad")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=50053, ge=1, le=65535)
    pool_size: int = Field(default=4, ge=1, le=64)
    log_level: str = Field(default="INFO")

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("key_derivation")
    @classmethod
    def validate_derivation(cls, v: str) -> str:
        """Validate key derivation mode is supported."""
        v = v.lower()
        if v not in KEY_DERIVATIONS:
            raise ValueError(f"Unsupported key derivation: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"Unsupported log level: {v}")
        return v

    @property
    def has_encryption_key(self) -> bool:
        return self.encryption_key is not None

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Unset variables fall back to the field defaults. An empty
        ENCRYPTION_KEY counts as unset.

        Returns:
            Populated VaultConfig instance.
        """
        env = os.environ
        values = {
            "database_url": env.get("DATABASE_URL", DEFAULT_DATABASE_URL),
            "encryption_key": env.get("ENCRYPTION_KEY") or None,
            "cipher_backend": env.get("CIPHER_BACKEND", "aesgcm"),
            "key_derivation": env.get("KEY_DERIVATION", "pad"),
            "host": env.get("HOST", "0.0.0.0"),
            "port": env.get("PORT", 50053),
            "pool_size": env.get("POOL_SIZE", 4),
            "log_level": env.get("LOG_LEVEL", "INFO"),
        }
        config = cls(**values)
        logger.debug(
            "Loaded vault config: database=%s backend=%s derivation=%s key_supplied=%s",
            config.database_url, config.cipher_backend,
            config.key_derivation, config.has_encryption_key,
        )
        return config

"""Process entry point: ``python -m record_vault`` or ``record-vault``."""
import logging

from aiohttp import web
from pydantic import ValidationError

from .exceptions import VaultError
from .version import __title__, __version__
from .vault import RecordCipher, RecordService, RecordStore, VaultConfig
from .web import create_app

logger = logging.getLogger("record_vault")


async def build_app(config: VaultConfig) -> web.Application:
    """Initialize the cipher, open the store and wire the HTTP app."""
    cipher = RecordCipher(backend=config.cipher_backend)
    cipher.initialize(config.encryption_key, derivation=config.key_derivation)
    if not config.has_encryption_key:
        logger.warning(
            "ENCRYPTION_KEY is not set: using a random key for this process. "
            "Records stored now cannot be decrypted after a restart."
        )

    store = await RecordStore.open(config.database_url, pool_size=config.pool_size)
    await store.ensure_schema()

    app = create_app(RecordService(cipher, store))

    async def close_store(app: web.Application) -> None:
        await store.close()

    app.on_cleanup.append(close_store)
    return app


_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def main() -> None:
    """Run the service; startup failures are logged and exit with status 1."""
    try:
        config = VaultConfig.from_env()
    except ValidationError:
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
        logger.exception("Invalid configuration")
        raise SystemExit(1)

    logging.basicConfig(level=config.log_level, format=_LOG_FORMAT)
    logger.info(
        "Starting %s %s on %s:%d", __title__, __version__, config.host, config.port,
    )
    try:
        web.run_app(
            build_app(config),
            host=config.host,
            port=config.port,
            print=None,
        )
    except (VaultError, OSError):
        logger.exception("Record vault failed to start")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

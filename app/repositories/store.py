"""Storage backend selection."""

from __future__ import annotations

from structlog import get_logger

from app.core.config import settings
from app.core.errors import ConfigurationError
from app.repositories.base import Store
from app.repositories.memory import memory_store
from app.repositories.postgres import postgres_store

logger = get_logger()

_store: Store | None = None


def configure_store(backend: str | None = None) -> Store:
    """
    Build the repositories for ``backend`` (default: settings.storage_backend).

    The PostgreSQL backend still needs db.connect() before first use.

    Raises:
        ConfigurationError: unknown backend name
    """
    global _store
    backend = backend or settings.storage_backend
    if backend == "memory":
        _store = memory_store()
    elif backend == "postgres":
        _store = postgres_store()
    else:
        raise ConfigurationError(
            f"Unknown storage backend '{backend}'", context={"backend": backend}
        )
    logger.info("store_configured", backend=backend)
    return _store


def get_store() -> Store:
    if _store is None:
        raise ConfigurationError("Storage backend not configured")
    return _store

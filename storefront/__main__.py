"""Run the storefront API: ``python -m storefront``."""
from __future__ import annotations

import uvicorn

from storefront.api import build_container, create_app
from storefront.core.config import Settings, load_settings
from storefront.core.logging_config import logger, setup_logging
from storefront.core.sentry_integration import init_sentry
from storefront.infra.datastore import DataStore, InMemoryDataStore
from storefront.infra.postgres import PostgresDatabase, PostgresDataStore


def build_store(settings: Settings) -> DataStore:
    if not settings.database.url:
        logger.warning("DATABASE_URL is not set; using the in-memory data store (data is lost on restart)")
        return InMemoryDataStore()
    db = PostgresDatabase(
        settings.database.url,
        min_size=settings.database.min_connections,
        max_size=settings.database.max_connections,
        timeout=settings.database.pool_wait_timeout,
    )
    db.init_schema()
    return PostgresDataStore(db)


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    init_sentry(settings.sentry_dsn, environment=settings.environment)

    app = create_app(build_container(settings, build_store(settings)))
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

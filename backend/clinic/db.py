import logging

from psycopg_pool import ConnectionPool

from .config import Settings

logger = logging.getLogger(__name__)


def make_pool(settings: Settings) -> ConnectionPool:
    """
    Build the shared pool. It is created closed; the app lifespan opens it,
    so importing the package never touches the network.
    """
    return ConnectionPool(
        conninfo="",  # libpq reads the rest from kwargs / PG* env
        kwargs=dict(
            host=settings.pg_host,
            dbname=settings.pg_database,
            user=settings.pg_user,
            sslmode=settings.pg_sslmode,
            connect_timeout=5,
        ),
        max_size=settings.db_pool_max,
        timeout=10,
        open=False,
    )


def open_pool(pool: ConnectionPool) -> None:
    logger.info("Opening database pool (max_size=%s)", pool.max_size)
    pool.open()


def close_pool(pool: ConnectionPool) -> None:
    logger.info("Closing database pool")
    pool.close()

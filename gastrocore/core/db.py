import functools
import logging
from contextlib import asynccontextmanager
from logging import INFO

from tortoise import Tortoise
from tortoise.transactions import in_transaction
from tortoise.exceptions import DBConnectionError

from gastrocore.core.config import DB_URL
from gastrocore.core.errors import ConnectivityError

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger("gastrocore.db")

# Define all models modules for the ORM
MODELS_MODULES = [
    "gastrocore.models.business",
    "gastrocore.models.inventory",
    "gastrocore.models.order",
    "gastrocore.models.audit",
]


async def init_db(db_url: str = DB_URL, generate_schemas: bool = True):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
            use_tz=True,
            timezone="UTC",
        )
        if generate_schemas:
            await Tortoise.generate_schemas()
        log.info("Database connection established and schemas generated.")
    except Exception:
        log.exception("FATAL ERROR: Could not connect to database.")
        # Re-raise to prevent the application from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")


@asynccontextmanager
async def atomic(conn=None):
    """Joins the caller's transaction when one is passed, otherwise opens a new one."""
    if conn is not None:
        yield conn
    else:
        async with in_transaction() as new_conn:
            yield new_conn


def translate_connectivity(func):
    """
    Re-raises transport failures reaching the database as ConnectivityError.

    No retry happens here; callers retry (movements are idempotent per order).
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (DBConnectionError, ConnectionError) as exc:
            log.warning(f"Database unreachable in {func.__name__}: {exc}")
            raise ConnectivityError("Persistence layer is unreachable. Retry the request.") from exc
    return wrapper

from typing import List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from structlog import get_logger

from app.core.config import Settings
from app.models import Base
from app.models.customer import PHONE_UNIQUE_INDEX

logger = get_logger()

TRGM_EXTENSION_SQL = "CREATE EXTENSION IF NOT EXISTS pg_trgm"
PHONE_UNIQUE_INDEX_SQL = (
    f"CREATE UNIQUE INDEX IF NOT EXISTS {PHONE_UNIQUE_INDEX} "
    "ON customer_phones (customer_id, phone_number)"
)
DROP_PHONE_UNIQUE_INDEX_SQL = f"DROP INDEX IF EXISTS {PHONE_UNIQUE_INDEX}"


async def _create_tables(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


def bootstrap_steps(settings: Settings) -> List[tuple]:
    """
    Ordered, idempotent schema steps. The trigram extension must exist before
    create_all builds the gin_trgm_ops index.
    """
    steps = [
        ("pg_trgm_extension", TRGM_EXTENSION_SQL),
        ("create_tables", _create_tables),
    ]
    if settings.PHONE_UNIQUE_PER_CUSTOMER:
        steps.append(("phone_unique_index", PHONE_UNIQUE_INDEX_SQL))
    else:
        steps.append(("phone_unique_index_dropped", DROP_PHONE_UNIQUE_INDEX_SQL))
    return steps


async def init_db(engine: AsyncEngine, settings: Settings) -> None:
    """Brings an empty or partially built database up to the current schema."""
    logger.info("schema_bootstrap_start", phone_unique=settings.PHONE_UNIQUE_PER_CUSTOMER)

    async with engine.begin() as conn:
        for name, step in bootstrap_steps(settings):
            if callable(step):
                await step(conn)
            else:
                await conn.execute(text(step))
            logger.info("schema_bootstrap_step", step=name)

    logger.info("schema_bootstrap_complete")

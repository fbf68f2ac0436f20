"""Schema creation and default rows for a fresh store database."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .models import Base, Category

_LOGGER = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Electronics", "Electronic devices and accessories"),
    ("Clothing", "Apparel and fashion items"),
    ("Books", "Books and educational materials"),
    ("Home & Garden", "Home improvement and garden supplies"),
    ("Sports", "Sports equipment and accessories"),
)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_default_categories(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert the starter categories into an empty categories table."""

    async with session_factory() as session, session.begin():
        existing = (await session.execute(select(func.count(Category.id)))).scalar_one()
        if existing:
            return 0
        session.add_all(Category(name=name, description=description) for name, description in DEFAULT_CATEGORIES)

    _LOGGER.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)


async def init_database(engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
    await create_schema(engine)
    await seed_default_categories(session_factory)

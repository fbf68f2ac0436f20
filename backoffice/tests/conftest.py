from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from decimal import Decimal

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.common import ServiceSettings, create_engine, dispose_engines, get_session_factory
from backoffice.store_service.app.main import create_app
from backoffice.store_service.app.models import Base, Product
from backoffice.store_service.app.schemas import ProductCreate
from backoffice.store_service.app.services import StockService


class MetricTracker:
    def __init__(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.name = name
        self.labels = labels or {}
        baseline = REGISTRY.get_sample_value(name, self.labels)
        self._baseline = baseline if baseline is not None else 0.0

    def delta(self) -> float:
        current = REGISTRY.get_sample_value(self.name, self.labels)
        value = current if current is not None else 0.0
        return value - self._baseline


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"
    engine = create_engine(database_url, timeout_seconds=1.0)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory(database_url, timeout_seconds=1.0)
    await dispose_engines()


@pytest_asyncio.fixture
async def client(tmp_path) -> AsyncIterator[AsyncClient]:
    settings = ServiceSettings(
        app_name="Store Test Service",
        enable_metrics=False,
        enable_tracing=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
    )
    app = create_app(settings)
    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            yield http_client


async def make_product(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    sku: str,
    stock: int,
    price: str = "10.00",
    min_stock_level: int | None = None,
) -> Product:
    payload = ProductCreate(
        name=f"Product {sku}",
        sku=sku,
        price=Decimal(price),
        stock_quantity=stock,
        min_stock_level=min_stock_level,
    )
    return await StockService(session_factory).create_product(payload)


@contextmanager
def locked_ledger_writes(session_factory: async_sessionmaker[AsyncSession], *, fail_on: int = 1) -> Iterator[None]:
    """Fail every ledger INSERT from the ``fail_on``-th on, the way a held SQLite write lock does."""

    engine = session_factory.kw["bind"].sync_engine
    seen = 0

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        nonlocal seen
        if statement.lstrip().upper().startswith("INSERT INTO INVENTORY_TRANSACTIONS"):
            seen += 1
            if seen >= fail_on:
                raise OperationalError(statement, parameters, Exception("database is locked"))

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    try:
        yield
    finally:
        event.remove(engine, "before_cursor_execute", _before_cursor_execute)

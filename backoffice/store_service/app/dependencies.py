"""Dependency helpers for the store service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.common import ServiceSettings, lifespan_session

from .reports import DashboardReports, LedgerReports
from .repository import CatalogRepository, CustomerRepository, OrderRepository
from .services import OrderService, StockService


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an AsyncSession for the current request lifecycle."""

    async with lifespan_session(get_session_factory(request)) as session:
        yield session


def get_catalog_repository(session: AsyncSession = Depends(get_session)) -> CatalogRepository:
    return CatalogRepository(session)


def get_customer_repository(session: AsyncSession = Depends(get_session)) -> CustomerRepository:
    return CustomerRepository(session)


def get_order_repository(session: AsyncSession = Depends(get_session)) -> OrderRepository:
    return OrderRepository(session)


def get_ledger_reports(session: AsyncSession = Depends(get_session)) -> LedgerReports:
    return LedgerReports(session)


def get_dashboard_reports(session: AsyncSession = Depends(get_session)) -> DashboardReports:
    return DashboardReports(session)


def get_order_service(request: Request) -> OrderService:
    """Return an order manager bound to the app's session factory."""

    settings: ServiceSettings = request.app.state.settings
    return OrderService(
        get_session_factory(request),
        order_number_attempts=settings.order_number_attempts,
    )


def get_stock_service(request: Request) -> StockService:
    settings: ServiceSettings = request.app.state.settings
    return StockService(
        get_session_factory(request),
        default_min_stock_level=settings.default_min_stock_level,
    )

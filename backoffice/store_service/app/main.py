from contextlib import asynccontextmanager

from fastapi import FastAPI

from backoffice.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    create_engine,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
)

from .api.categories import router as categories_router
from .api.customers import router as customers_router
from .api.dashboard import router as dashboard_router
from .api.health import router as health_router
from .api.inventory import router as inventory_router
from .api.orders import router as orders_router
from .api.products import router as products_router
from .bootstrap import init_database

SERVICE_NAME = "Store Back-office"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./store_management.db"


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the store back-office FastAPI application."""

    resolved_settings = settings or ServiceSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    timeout = resolved_settings.database_timeout_seconds

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session_factory = get_session_factory(database_url, timeout_seconds=timeout)
        if resolved_settings.database_auto_create:
            await init_database(create_engine(database_url, timeout_seconds=timeout), session_factory)
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(categories_router)
    app.include_router(products_router)
    app.include_router(customers_router)
    app.include_router(orders_router)
    app.include_router(inventory_router)
    app.include_router(dashboard_router)
    return app


app = create_app()

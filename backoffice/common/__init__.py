"""Shared utilities for the store back-office services."""

from .config import DEFAULT_APP_NAME, ServiceSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .database import (
    create_engine,
    dispose_engines,
    get_session_factory,
    lifespan_session,
    resolve_database_url,
    transaction_scope,
)
from .errors import (
    OperationTimedOut,
    PersistenceError,
    StoreError,
    register_error_handlers,
    translate_database_error,
)

__all__ = [
    "ServiceSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "create_engine",
    "dispose_engines",
    "get_session_factory",
    "lifespan_session",
    "resolve_database_url",
    "transaction_scope",
    "StoreError",
    "PersistenceError",
    "OperationTimedOut",
    "register_error_handlers",
    "translate_database_error",
]

#!/usr/bin/env python3
"""Check every product's stock counter against its inventory ledger."""

from __future__ import annotations

import argparse
import asyncio
import json

from backoffice.common import dispose_engines, get_session_factory, get_settings, resolve_database_url
from backoffice.store_service.app.reports import LedgerReports


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./store_management.db"


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Reconcile product stock counters with the inventory ledger")
    parser.add_argument(
        "--database-url",
        default=resolve_database_url(settings, DEFAULT_DATABASE_URL),
        help="SQLAlchemy URL of the store database (default: %(default)s or SERVICE_DATABASE_URL)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.database_timeout_seconds,
        help="SQLite busy timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Include consistent products in the report, not only drifting ones",
    )
    return parser.parse_args()


async def _reconcile(database_url: str, *, timeout: float, include_all: bool) -> dict[str, object]:
    session_factory = get_session_factory(database_url, timeout_seconds=timeout)
    try:
        async with session_factory() as session:
            rows = await LedgerReports(session).reconcile()
    finally:
        await dispose_engines()

    drifting = [row for row in rows if row.drift]
    listed = rows if include_all else drifting
    return {
        "products": len(rows),
        "drifting": len(drifting),
        "consistent": not drifting,
        "items": [
            {
                "product_id": row.product_id,
                "sku": row.sku,
                "stock_quantity": row.stock_quantity,
                "ledger_balance": row.ledger_balance,
                "drift": row.drift,
            }
            for row in listed
        ],
    }


async def main_async() -> int:
    args = parse_args()
    report = await _reconcile(args.database_url, timeout=args.timeout, include_all=args.all)
    print(json.dumps(report, indent=2, sort_keys=True))
    return 0 if report["consistent"] else 1


def main() -> None:
    try:
        exit_code = asyncio.run(main_async())
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        exit_code = 2
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()

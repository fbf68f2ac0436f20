#!/usr/bin/env python3
"""Chaos scenario: race many small orders against one product's stock.

Fires concurrent ``POST /orders`` requests for a single product at a running
store API, then reads the product and the reconciliation report back so an
operator can confirm stock never went negative and the ledger still balances.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import time
from collections import Counter
from typing import Any

import httpx


def _env_default(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Race concurrent orders against a single product")
    parser.add_argument(
        "--base-url",
        default=_env_default("STORE_BASE_URL", "http://localhost:5000"),
        help="Store API base URL (default: %(default)s or STORE_BASE_URL)",
    )
    parser.add_argument("--product-id", type=int, required=True, help="Product to order")
    parser.add_argument(
        "--requests",
        type=int,
        default=int(_env_default("CONCURRENT_ORDER_REQUESTS", "50")),
        help="Number of orders to submit (default: %(default)s or CONCURRENT_ORDER_REQUESTS)",
    )
    parser.add_argument("--quantity", type=int, default=1, help="Units per order (default: %(default)s)")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=10,
        help="Maximum in-flight requests (default: %(default)s)",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=10.0,
        help="Per-request timeout in seconds (default: %(default)s)",
    )
    return parser.parse_args()


async def _place_order(
    client: httpx.AsyncClient,
    semaphore: asyncio.Semaphore,
    *,
    product_id: int,
    quantity: int,
) -> tuple[int, str | None, float]:
    payload = {"items": [{"productId": product_id, "quantity": quantity}]}
    async with semaphore:
        started = time.perf_counter()
        try:
            response = await client.post("/orders", json=payload)
        except httpx.HTTPError as exc:
            return 0, type(exc).__name__, time.perf_counter() - started
    elapsed = time.perf_counter() - started
    code: str | None = None
    if response.status_code >= 400:
        code = response.json().get("code")
    return response.status_code, code, elapsed


async def _product_stock(client: httpx.AsyncClient, product_id: int) -> int:
    response = await client.get(f"/products/{product_id}")
    response.raise_for_status()
    return int(response.json()["stockQuantity"])


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    timeout = httpx.Timeout(args.request_timeout)
    semaphore = asyncio.Semaphore(max(1, args.concurrency))
    async with httpx.AsyncClient(base_url=args.base_url, timeout=timeout) as client:
        stock_before = await _product_stock(client, args.product_id)
        results = await asyncio.gather(
            *(
                _place_order(client, semaphore, product_id=args.product_id, quantity=args.quantity)
                for _ in range(args.requests)
            )
        )
        stock_after = await _product_stock(client, args.product_id)
        reconciliation = await client.get("/inventory/reconciliation", params={"driftOnly": "true"})
        reconciliation.raise_for_status()

    statuses = Counter(status for status, _, _ in results)
    codes = Counter(code for _, code, _ in results if code)
    accepted = statuses.get(201, 0)
    latencies = sorted(elapsed for _, _, elapsed in results)
    expected_after = stock_before - accepted * args.quantity
    return {
        "product_id": args.product_id,
        "requests": args.requests,
        "accepted": accepted,
        "statuses": {str(status): count for status, count in sorted(statuses.items())},
        "error_codes": dict(codes),
        "stock_before": stock_before,
        "stock_after": stock_after,
        "stock_matches_accepted_orders": stock_after == expected_after,
        "stock_negative": stock_after < 0,
        "ledger_consistent": reconciliation.json()["consistent"],
        "latency_p50_seconds": round(latencies[len(latencies) // 2], 4) if latencies else None,
        "latency_max_seconds": round(latencies[-1], 4) if latencies else None,
    }


async def main_async() -> int:
    args = parse_args()
    if args.requests <= 0 or args.quantity <= 0:
        print(json.dumps({"error": "--requests and --quantity must be positive"}))
        return 2
    report = await _run(args)
    print(json.dumps(report, indent=2, sort_keys=True))
    healthy = report["ledger_consistent"] and report["stock_matches_accepted_orders"] and not report["stock_negative"]
    return 0 if healthy else 1


def main() -> None:
    try:
        exit_code = asyncio.run(main_async())
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        exit_code = 2
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()

import logging
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quoting.api.catalog import (
    CANONICAL_PERIODS,
    ConfigError,
    find_strategy,
    get_optional_path,
    load_spread_table,
    load_strategies,
    spread_table_to_dict,
    strategy_to_dict,
)
from quoting.api.logging_config import attach_handlers
from quoting.api.payloads import (
    parse_invoice,
    parse_optional_number,
    parse_price_overrides,
    parse_strategy,
    validate_price_overrides,
)
from quoting.api.simulation import PricingStrategy, rank_strategies, savings_score, simulate, with_power_price
from quoting.api.spreads import TariffSpreadTable, VoltageTier

load_dotenv()

CatalogSource = tuple[Path | None, Path | None]


@dataclass(frozen=True)
class Catalog:
    source: CatalogSource
    loaded_at: float
    strategies: tuple[PricingStrategy, ...]
    spreads: TariffSpreadTable


class CatalogCache:
    """Keeps the last loaded catalog until its file paths change or it outlives the TTL."""

    def __init__(self) -> None:
        self._catalog: Catalog | None = None
        self._lock = Lock()

    def get(self, source: CatalogSource, ttl_seconds: int) -> Catalog:
        with self._lock:
            current = self._catalog
            if current is not None and current.source == source and time.monotonic() - current.loaded_at < ttl_seconds:
                return current
            current = Catalog(
                source=source,
                loaded_at=time.monotonic(),
                strategies=load_strategies(source[0]),
                spreads=load_spread_table(source[1]),
            )
            self._catalog = current
            return current

    def clear(self) -> None:
        with self._lock:
            self._catalog = None


def configure_logging() -> logging.Logger:
    attach_handlers(logging.getLogger(), "quoting_api.log", sys.stdout)
    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"):
        named = logging.getLogger(logger_name)
        named.handlers.clear()
        named.propagate = True
    return logging.getLogger("quoting_api")


logger = configure_logging()
cache = CatalogCache()


def get_catalog_ttl_seconds() -> int:
    raw = os.getenv("QUOTING_CATALOG_TTL_SECONDS", "60")
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning("Invalid QUOTING_CATALOG_TTL_SECONDS=%r; using 60", raw)
        return 60


def get_catalog() -> Catalog:
    source = (get_optional_path("QUOTING_STRATEGIES_PATH"), get_optional_path("QUOTING_SPREADS_PATH"))
    return cache.get(source, get_catalog_ttl_seconds())


def load_catalog() -> tuple[tuple[PricingStrategy, ...], TariffSpreadTable]:
    try:
        catalog = get_catalog()
    except ConfigError as exc:
        logger.exception("Catalog configuration error")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return catalog.strategies, catalog.spreads


def resolve_request_strategy(body: dict[str, Any], strategies: tuple[PricingStrategy, ...]) -> PricingStrategy:
    if body.get("strategy") is not None:
        return parse_strategy(body["strategy"])

    strategy_id = body.get("strategyId")
    if strategy_id is None:
        return strategies[0]
    if not isinstance(strategy_id, str):
        raise ValueError("strategyId must be a string")
    strategy = find_strategy(strategies, strategy_id)
    if strategy is None:
        raise HTTPException(status_code=404, detail=f"Unknown strategyId: {strategy_id}")
    return strategy


app = FastAPI(title="Energy Proposal Quoting API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def auth_middleware(request: Request, call_next: Callable[..., Any]) -> JSONResponse:
    if request.url.path.startswith("/api"):
        auth_token = os.getenv("QUOTING_AUTH_TOKEN", "").strip()
        if auth_token:
            provided = request.headers.get("X-Auth-Token", "") or request.query_params.get("token", "")
            if provided != auth_token:
                return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
    return await call_next(request)


@app.get("/api/health")
def get_health() -> dict[str, Any]:
    catalog_ok = False
    strategy_count = 0
    try:
        strategy_count = len(get_catalog().strategies)
        catalog_ok = True
    except ConfigError:
        logger.exception("Health check catalog failure")

    return {
        "serverTime": datetime.now().isoformat(),
        "catalogLoaded": catalog_ok,
        "strategyCount": strategy_count,
        "tiers": [tier.value for tier in VoltageTier],
    }


@app.get("/api/strategies")
def get_strategy_catalog() -> dict[str, Any]:
    strategies, _ = load_catalog()
    return {"strategies": [strategy_to_dict(strategy) for strategy in strategies]}


@app.get("/api/spreads")
def get_spreads() -> dict[str, Any]:
    _, spreads = load_catalog()
    return {"periods": list(CANONICAL_PERIODS), "spreads": spread_table_to_dict(spreads)}


@app.post("/api/simulate")
async def post_simulate(request: Request) -> dict[str, Any]:
    body = await read_json_object(request)
    strategies, spreads = load_catalog()

    try:
        invoice = parse_invoice(body.get("invoice"))
        strategy = resolve_request_strategy(body, strategies)
        strategy = with_power_price(
            strategy,
            power_spread=parse_optional_number(body, "powerSpread") or 0.0,
            manual_power_price=parse_optional_number(body, "manualPowerPrice"),
        )
        manual_margin = parse_optional_number(body, "manualMargin")
        overrides = parse_price_overrides(body.get("priceOverrides"))
        validate_price_overrides(invoice, overrides)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = simulate(invoice, strategy, spreads, manual_margin=manual_margin, price_overrides=overrides)
    logger.info(
        "Simulated strategy=%s tier=%s periods=%s savings=%.2f EUR (%.2f%%)",
        strategy.id,
        invoice.tier,
        len(invoice.consumption),
        result.annual_savings_eur,
        result.annual_savings_percent,
    )

    payload = result.to_dict()
    payload["savingsScore"] = savings_score(result.annual_savings_percent)
    return payload


@app.post("/api/compare")
async def post_compare(request: Request) -> dict[str, Any]:
    body = await read_json_object(request)
    strategies, spreads = load_catalog()

    try:
        invoice = parse_invoice(body.get("invoice"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    ranked = rank_strategies(invoice, strategies, spreads)
    return {
        "results": [
            {
                "strategyId": strategy.id,
                "annualSavingsEur": result.annual_savings_eur,
                "annualSavingsPercent": result.annual_savings_percent,
                "appliedMarginEurKwh": result.applied_margin_eur_kwh,
                "annualCostProposed": result.annual_cost_proposed,
            }
            for strategy, result in ranked
        ]
    }


async def read_json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body

from __future__ import annotations

import math
from typing import Any, Mapping

from quoting.api.simulation import DEFAULT_DAYS_IN_PERIOD, ConsumptionPeriod, InvoiceProfile, PricingStrategy
from quoting.api.spreads import parse_tier


def _parse_number(payload: Mapping[str, Any], name: str, default: float | None = None) -> float:
    if name not in payload or payload[name] is None:
        if default is None:
            raise ValueError(f"Missing required payload field: {name}")
        return default
    value = payload[name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be numeric")
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError(f"{name} must be a finite number") from exc
    if not math.isfinite(number):
        raise ValueError(f"{name} must be a finite number")
    return number


def _parse_text(payload: Mapping[str, Any], name: str, default: str | None = None) -> str:
    value = payload.get(name)
    if value is None:
        if default is None:
            raise ValueError(f"Missing required payload field: {name}")
        return default
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value


def parse_consumption_period(payload: Any) -> ConsumptionPeriod:
    if not isinstance(payload, dict):
        raise ValueError("consumption entries must be objects")
    return ConsumptionPeriod(
        period_name=_parse_text(payload, "period"),
        energy_kwh=_parse_number(payload, "kwh", default=0.0),
        current_unit_price_eur=_parse_number(payload, "currentPriceEur", default=0.0),
    )


def parse_invoice(payload: Any) -> InvoiceProfile:
    if not isinstance(payload, dict):
        raise ValueError("invoice must be an object")

    tier = parse_tier(_parse_text(payload, "tensionLevel"))
    if tier is None:
        raise ValueError(f"Unknown tensionLevel: {payload['tensionLevel']}")

    consumption = payload.get("consumptionData")
    if not isinstance(consumption, list):
        raise ValueError("consumptionData must be a list")

    return InvoiceProfile(
        tier=tier,
        consumption=tuple(parse_consumption_period(item) for item in consumption),
        days_in_period=_parse_number(payload, "daysInPeriod", default=float(DEFAULT_DAYS_IN_PERIOD)),
        daily_power_cost_eur=_parse_number(payload, "dailyPowerCostEur", default=0.0),
        reactive_cost_eur=_parse_number(payload, "reactiveCostEur", default=0.0),
    )


def parse_strategy(payload: Any) -> PricingStrategy:
    if not isinstance(payload, dict):
        raise ValueError("strategy must be an object")
    return PricingStrategy(
        id=_parse_text(payload, "id", default="custom"),
        name=_parse_text(payload, "name", default="Personalizado"),
        kind=_parse_text(payload, "type", default="FIXED"),
        description=_parse_text(payload, "description", default=""),
        base_price_mwh=_parse_number(payload, "basePriceMWh"),
        eric=_parse_number(payload, "eric", default=0.0),
        losses_percent=_parse_number(payload, "losses", default=0.0),
        proposal_power_price_daily=_parse_number(payload, "proposalPowerPriceDaily"),
    )


def parse_optional_number(payload: Mapping[str, Any], name: str) -> float | None:
    if payload.get(name) is None:
        return None
    return _parse_number(payload, name)


def parse_price_overrides(payload: Any) -> dict[str, float]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("priceOverrides must be an object keyed by period")
    return {str(period): _parse_number(payload, period) for period in payload}


def validate_price_overrides(invoice: InvoiceProfile, overrides: Mapping[str, float]) -> None:
    known = {period.period_name for period in invoice.consumption}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"priceOverrides reference unknown periods: {', '.join(unknown)}")

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Sequence

from quoting.api.payloads import parse_strategy
from quoting.api.simulation import PricingStrategy
from quoting.api.spreads import TariffSpreadTable, VoltageTier, parse_tier


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


CANONICAL_PERIODS = ("Ponta", "Cheias", "Vazio", "Super Vazio")

MASTER_STRATEGIES: tuple[PricingStrategy, ...] = (
    PricingStrategy(
        id="zug_m12",
        name="Watton Móvil 12 Meses",
        kind="HEDGING",
        description="Vigência 01.12.2025 -> 30.11.2026. Segurança total a curto prazo.",
        base_price_mwh=63.84,
        eric=0.0025,
        losses_percent=15.0,
        proposal_power_price_daily=1.5249,
    ),
    PricingStrategy(
        id="zug_m18",
        name="Watton Móvil 18 Meses",
        kind="HEDGING",
        description="Vigência 01.12.2025 -> 31.05.2027. Otimização de médio prazo.",
        base_price_mwh=59.67,
        eric=0.0025,
        losses_percent=15.0,
        proposal_power_price_daily=1.5249,
    ),
    PricingStrategy(
        id="zug_cal27",
        name="Watton CAL 2027",
        kind="FIXED",
        description="Vigência Ano Civil 2027. Para planeamento orçamental de longo prazo.",
        base_price_mwh=60.50,
        eric=0.0025,
        losses_percent=15.0,
        proposal_power_price_daily=1.5249,
    ),
    PricingStrategy(
        id="zug_q1_26",
        name="Watton Início Q+1 (2026)",
        kind="HEDGING",
        description="Vigência Ano 2026 completo. Estabilidade anual.",
        base_price_mwh=61.32,
        eric=0.0025,
        losses_percent=15.0,
        proposal_power_price_daily=1.5249,
    ),
    PricingStrategy(
        id="zug_q2_26",
        name="Watton Início Q+2 (Abr 26)",
        kind="HEDGING",
        description="Vigência 01.04.2026 -> 31.03.2027.",
        base_price_mwh=59.92,
        eric=0.0025,
        losses_percent=15.0,
        proposal_power_price_daily=1.5249,
    ),
)

# EUR/kWh added on top of the base price.
DEFAULT_SPREADS: dict[VoltageTier, dict[str, float | None]] = {
    VoltageTier.BTN: {
        "Simples": 0.059137,
        "Vazio": 0.059137,
        "Fora Vazio": 0.071358,
        "Ponta": 0.071358,
        "Cheias": 0.071358,
    },
    VoltageTier.BTE: {
        "Vazio": 0.054136,
        "Super Vazio": 0.054136,
        "Ponta": 0.080945,
        "Cheias": 0.080945,
    },
    VoltageTier.MT: {
        "Vazio": 0.06095,
        "Super Vazio": 0.06095,
        "Ponta": 0.06261,
        "Cheias": 0.06261,
    },
    VoltageTier.AT: {
        "Vazio": 0.05,
        "Ponta": 0.06,
        "Cheias": 0.06,
    },
}


def get_optional_path(name: str) -> Path | None:
    raw = os.getenv(name, "").strip()
    return Path(raw) if raw else None


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            return json.load(handle)
    except OSError as exc:
        raise ConfigError(f"Cannot read catalog file: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in catalog file {path}: {exc}") from exc


def load_strategies(path: str | Path | None = None) -> tuple[PricingStrategy, ...]:
    if path is None:
        return MASTER_STRATEGIES

    raw = _read_json(Path(path))
    if not isinstance(raw, list) or not raw:
        raise ConfigError(f"Strategy catalog must be a non-empty JSON array: {path}")

    strategies: list[PricingStrategy] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        try:
            strategy = parse_strategy(item)
        except ValueError as exc:
            raise ConfigError(f"Invalid strategy at index {index} in {path}: {exc}") from exc
        if strategy.id in seen:
            raise ConfigError(f"Duplicate strategy id {strategy.id!r} in {path}")
        seen.add(strategy.id)
        strategies.append(strategy)
    return tuple(strategies)


def load_spread_table(path: str | Path | None = None) -> TariffSpreadTable:
    if path is None:
        return DEFAULT_SPREADS

    raw = _read_json(Path(path))
    if not isinstance(raw, dict):
        raise ConfigError(f"Spread table must be a JSON object keyed by tier: {path}")

    table: dict[VoltageTier, dict[str, float | None]] = {}
    for raw_tier, periods in raw.items():
        tier = parse_tier(raw_tier)
        if tier is None:
            raise ConfigError(f"Unknown voltage tier {raw_tier!r} in {path}")
        if not isinstance(periods, dict):
            raise ConfigError(f"Spreads for tier {raw_tier} must be an object: {path}")
        entries: dict[str, float | None] = {}
        for period_name, value in periods.items():
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise ConfigError(f"Spread {raw_tier}/{period_name} must be numeric or null: {path}")
            try:
                entries[str(period_name)] = None if value is None else float(value)
            except OverflowError as exc:
                raise ConfigError(f"Spread {raw_tier}/{period_name} is out of range: {path}") from exc
        table[tier] = entries
    return table


def find_strategy(strategies: Sequence[PricingStrategy], strategy_id: str) -> PricingStrategy | None:
    return next((strategy for strategy in strategies if strategy.id == strategy_id), None)


def strategy_to_dict(strategy: PricingStrategy) -> dict[str, Any]:
    return {
        "id": strategy.id,
        "name": strategy.name,
        "type": strategy.kind,
        "description": strategy.description,
        "basePriceMWh": strategy.base_price_mwh,
        "eric": strategy.eric,
        "losses": strategy.losses_percent,
        "proposalPowerPriceDaily": strategy.proposal_power_price_daily,
    }


def spread_table_to_dict(table: TariffSpreadTable) -> dict[str, dict[str, float | None]]:
    return {VoltageTier(tier).value: dict(periods) for tier, periods in table.items()}

from __future__ import annotations

from enum import Enum
from typing import Mapping


class VoltageTier(str, Enum):
    AT = "AT"
    MT = "MT"
    BTE = "BTE"
    BTN = "BTN"


TariffSpreadTable = Mapping[VoltageTier, Mapping[str, float | None]]

UNKNOWN_SPREAD = 0.06

# Ordered: a name containing both "ponta" and "vazio" resolves as vazio.
KEYWORD_FALLBACKS: tuple[tuple[str, tuple[str, ...], float], ...] = (
    ("vazio", ("Vazio", "Simples"), 0.05),
    ("ponta", ("Ponta", "Fora Vazio"), 0.07),
    ("cheia", ("Cheias", "Ponta"), 0.07),
)


def parse_tier(value: str | VoltageTier | None) -> VoltageTier | None:
    if isinstance(value, VoltageTier):
        return value
    if value is None:
        return None
    try:
        return VoltageTier(str(value).strip().upper())
    except ValueError:
        return None


def resolve_spread(table: TariffSpreadTable, tier: str | VoltageTier | None, period_name: str) -> float:
    """Return the EUR/kWh spread for a tier and time-of-use period.

    Invoices name their periods inconsistently, so an unmatched name falls
    back by keyword to the closest canonical entry instead of failing. This
    is an approximation: e.g. "Fora Vazio" contains "vazio" and therefore
    resolves to the tier's Vazio spread when it has no exact entry.
    """
    parsed = parse_tier(tier)
    tier_spreads = table.get(parsed) if parsed is not None else None
    if tier_spreads is None:
        return UNKNOWN_SPREAD

    exact = tier_spreads.get(period_name)
    if exact is not None:
        return exact

    lowered = period_name.lower()
    for keyword, candidates, default in KEYWORD_FALLBACKS:
        if keyword not in lowered:
            continue
        for candidate in candidates:
            spread = tier_spreads.get(candidate)
            if spread is not None:
                return spread
        return default

    return UNKNOWN_SPREAD

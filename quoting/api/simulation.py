from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping, Sequence

from quoting.api.currency import DAYS_PER_YEAR, project_annual, round_currency
from quoting.api.spreads import TariffSpreadTable, VoltageTier, resolve_spread

logger = logging.getLogger(__name__)

DEFAULT_DAYS_IN_PERIOD = 30
SAVINGS_FLOOR = 0.05


@dataclass(frozen=True)
class ConsumptionPeriod:
    period_name: str
    energy_kwh: float
    current_unit_price_eur: float


@dataclass(frozen=True)
class InvoiceProfile:
    tier: VoltageTier | str
    consumption: tuple[ConsumptionPeriod, ...]
    days_in_period: float = DEFAULT_DAYS_IN_PERIOD
    daily_power_cost_eur: float = 0.0
    reactive_cost_eur: float = 0.0

    @property
    def effective_days(self) -> float:
        if self.days_in_period and self.days_in_period > 0:
            return self.days_in_period
        return DEFAULT_DAYS_IN_PERIOD


@dataclass(frozen=True)
class PricingStrategy:
    id: str
    name: str
    base_price_mwh: float
    eric: float
    losses_percent: float
    proposal_power_price_daily: float
    kind: str = "FIXED"
    description: str = ""


@dataclass(frozen=True)
class FinalPrice:
    period_name: str
    base: float
    spread: float
    final_price: float


@dataclass(frozen=True)
class PeriodStat:
    period_name: str
    kwh: float
    current_unit: float
    current_total: float
    proposed_unit: float
    proposed_total: float


@dataclass(frozen=True)
class PeriodTotals:
    current_energy: float
    proposed_energy: float
    current_power: float
    proposed_power: float
    current_total: float
    proposed_total: float


@dataclass(frozen=True)
class CurrentCosts:
    energy: float
    power: float
    reactive: float
    total: float
    annual: float


@dataclass(frozen=True)
class SimulationResult:
    annual_cost_current: float
    annual_cost_proposed: float
    annual_savings_eur: float
    annual_savings_percent: float
    applied_margin_eur_kwh: float
    applied_strategy_name: str
    final_prices: tuple[FinalPrice, ...]
    period_stats: tuple[PeriodStat, ...]
    period_totals: PeriodTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "annualCostCurrent": self.annual_cost_current,
            "annualCostProposed": self.annual_cost_proposed,
            "annualSavingsEur": self.annual_savings_eur,
            "annualSavingsPercent": self.annual_savings_percent,
            "appliedMarginEurKwh": self.applied_margin_eur_kwh,
            "appliedStrategyName": self.applied_strategy_name,
            "finalPrices": [_camel_keys(asdict(item)) for item in self.final_prices],
            "periodStats": [_camel_keys(asdict(item)) for item in self.period_stats],
            "periodTotals": _camel_keys(asdict(self.period_totals)),
        }


def _camel_keys(values: dict[str, Any]) -> dict[str, Any]:
    converted: dict[str, Any] = {}
    for key, value in values.items():
        head, *rest = key.split("_")
        converted[head + "".join(part.capitalize() for part in rest)] = value
    return converted


def pre_margin_unit_cost(strategy: PricingStrategy, spread: float) -> float:
    base_per_kwh = strategy.base_price_mwh / 1000
    return (base_per_kwh + spread + strategy.eric) * (1 + strategy.losses_percent / 100)


def with_power_price(
    strategy: PricingStrategy,
    power_spread: float = 0.0,
    manual_power_price: float | None = None,
) -> PricingStrategy:
    if manual_power_price is not None:
        return replace(strategy, proposal_power_price_daily=manual_power_price)
    return replace(strategy, proposal_power_price_daily=strategy.proposal_power_price_daily + power_spread)


def aggregate_current_costs(invoice: InvoiceProfile) -> CurrentCosts:
    days = invoice.effective_days

    # Plain left-to-right accumulation, rounded once rather than per line.
    energy = 0.0
    for period in invoice.consumption:
        energy += period.energy_kwh * period.current_unit_price_eur
    energy = round_currency(energy)
    power = round_currency(invoice.daily_power_cost_eur * days)
    reactive = round_currency(invoice.reactive_cost_eur)
    total = round_currency(energy + power + reactive)

    return CurrentCosts(
        energy=energy,
        power=power,
        reactive=reactive,
        total=total,
        annual=project_annual(total, days),
    )


def resolve_margin(
    invoice: InvoiceProfile,
    strategy: PricingStrategy,
    spreads: TariffSpreadTable,
    manual_margin: float | None = None,
    savings_floor: float = SAVINGS_FLOOR,
) -> float:
    """Return the EUR/kWh margin added on top of the strategy's cost.

    An operator-supplied margin is used verbatim, even when zero or negative.
    Otherwise the uniform margin is solved so that the proposed annual cost
    lands ``savings_floor`` below the current one. The result is clamped at
    zero: when the strategy's base cost already exceeds the target, the
    realized savings fall short of the floor rather than pricing below cost.
    """
    if manual_margin is not None:
        return manual_margin

    days = invoice.effective_days
    current_annual = aggregate_current_costs(invoice).annual

    total_kwh = 0.0
    total_pre_margin_cost = 0.0
    for period in invoice.consumption:
        spread = resolve_spread(spreads, invoice.tier, period.period_name)
        total_kwh += period.energy_kwh
        total_pre_margin_cost += period.energy_kwh * pre_margin_unit_cost(strategy, spread)

    if total_kwh == 0:
        return 0.0

    proposed_power_period = round_currency(strategy.proposal_power_price_daily * days)
    target_annual = current_annual * (1 - savings_floor)
    target_period = target_annual / (DAYS_PER_YEAR / days)

    margin = (target_period - proposed_power_period - total_pre_margin_cost) / total_kwh
    if margin < 0:
        logger.debug(
            "Margin clamped to zero for strategy=%s (solved %.6f EUR/kWh)",
            strategy.id,
            margin,
        )
        return 0.0
    return margin


def simulate(
    invoice: InvoiceProfile,
    strategy: PricingStrategy,
    spreads: TariffSpreadTable,
    manual_margin: float | None = None,
    price_overrides: Mapping[str, float] | None = None,
    savings_floor: float = SAVINGS_FLOOR,
) -> SimulationResult:
    days = invoice.effective_days
    current = aggregate_current_costs(invoice)
    applied_margin = resolve_margin(invoice, strategy, spreads, manual_margin, savings_floor)
    overrides = price_overrides or {}

    base_per_kwh = strategy.base_price_mwh / 1000
    proposed_power = round_currency(strategy.proposal_power_price_daily * days)

    final_prices: list[FinalPrice] = []
    period_stats: list[PeriodStat] = []
    proposed_energy = 0.0

    for period in invoice.consumption:
        spread = resolve_spread(spreads, invoice.tier, period.period_name)
        final_unit = pre_margin_unit_cost(strategy, spread) + applied_margin
        if period.period_name in overrides:
            final_unit = overrides[period.period_name]

        proposed_total = round_currency(period.energy_kwh * final_unit)
        current_total = round_currency(period.energy_kwh * period.current_unit_price_eur)
        proposed_energy += proposed_total

        period_stats.append(
            PeriodStat(
                period_name=period.period_name,
                kwh=period.energy_kwh,
                current_unit=period.current_unit_price_eur,
                current_total=current_total,
                proposed_unit=final_unit,
                proposed_total=proposed_total,
            )
        )
        final_prices.append(
            FinalPrice(
                period_name=period.period_name,
                base=base_per_kwh,
                spread=spread,
                final_price=final_unit,
            )
        )

    proposed_energy = round_currency(proposed_energy)
    proposed_period_total = round_currency(proposed_energy + proposed_power)
    proposed_annual = project_annual(proposed_period_total, days)

    savings_eur = round_currency(current.annual - proposed_annual)
    savings_percent = savings_eur / current.annual * 100 if current.annual > 0 else 0.0

    return SimulationResult(
        annual_cost_current=current.annual,
        annual_cost_proposed=proposed_annual,
        annual_savings_eur=savings_eur,
        annual_savings_percent=savings_percent,
        applied_margin_eur_kwh=applied_margin,
        applied_strategy_name=strategy.name,
        final_prices=tuple(final_prices),
        period_stats=tuple(period_stats),
        period_totals=PeriodTotals(
            current_energy=current.energy,
            proposed_energy=proposed_energy,
            current_power=current.power,
            proposed_power=proposed_power,
            current_total=current.total,
            proposed_total=proposed_period_total,
        ),
    )


def savings_score(savings_percent: float) -> int:
    if savings_percent > 30:
        return 10
    if savings_percent > 20:
        return 8
    if savings_percent > 10:
        return 7
    if savings_percent > 5:
        return 6
    return 5


def rank_strategies(
    invoice: InvoiceProfile,
    strategies: Sequence[PricingStrategy],
    spreads: TariffSpreadTable,
) -> list[tuple[PricingStrategy, SimulationResult]]:
    ranked = [(strategy, simulate(invoice, strategy, spreads)) for strategy in strategies]
    ranked.sort(key=lambda item: item[1].annual_savings_eur, reverse=True)
    return ranked

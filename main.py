import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from consumption_csv import parse_consumption_csv
from quoting.api.catalog import (
    ConfigError,
    find_strategy,
    get_optional_path,
    load_spread_table,
    load_strategies,
    strategy_to_dict,
)
from quoting.api.logging_config import attach_handlers
from quoting.api.payloads import parse_invoice, validate_price_overrides
from quoting.api.simulation import InvoiceProfile, savings_score, simulate, with_power_price
from quoting.api.spreads import VoltageTier, parse_tier


def configure_logging() -> logging.Logger:
    # stdout carries the result JSON.
    return attach_handlers(logging.getLogger("quoting_cli"), "quoting_cli.log", sys.stderr)


def parse_override(raw: str) -> tuple[str, float]:
    if "=" not in raw:
        raise argparse.ArgumentTypeError(f"Override must be PERIOD=PRICE: {raw}")
    period, value = raw.rsplit("=", 1)
    try:
        return period.strip(), float(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid override price: {value}") from exc


def parse_tier_arg(raw: str) -> VoltageTier:
    tier = parse_tier(raw)
    if tier is None:
        raise argparse.ArgumentTypeError(f"Unknown voltage tier: {raw}")
    return tier


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Quote an energy-supply proposal against a client's current invoice")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--invoice", type=Path, help="Invoice JSON (tensionLevel, daysInPeriod, consumptionData, ...)")
    source.add_argument("--consumption-csv", type=Path, help="CSV with Period, kWh, UnitPriceEur columns")
    parser.add_argument("--tier", type=parse_tier_arg, default=VoltageTier.BTE, help="Voltage tier for --consumption-csv")
    parser.add_argument("--days", type=float, help="Billing-period length in days")
    parser.add_argument("--daily-power", type=float, help="Current daily power charge (EUR/day)")
    parser.add_argument("--reactive", type=float, help="Reactive-energy charge for the period (EUR)")
    parser.add_argument("--strategy", help="Strategy id from the catalog (defaults to the first entry)")
    parser.add_argument("--margin", type=float, help="Manual margin in EUR/kWh instead of the automatic one")
    parser.add_argument("--override", type=parse_override, action="append", default=[], metavar="PERIOD=PRICE")
    parser.add_argument("--power-spread", type=float, default=0.0, help="EUR/day added to the strategy power price")
    parser.add_argument("--power-price", type=float, help="Manual proposal power price (EUR/day)")
    parser.add_argument("--list-strategies", action="store_true", help="Print the strategy catalog then exit")
    return parser


def load_invoice(args: argparse.Namespace) -> InvoiceProfile:
    if args.invoice is not None:
        with args.invoice.open("r", encoding="utf-8-sig") as handle:
            return parse_invoice(json.load(handle))
    if args.consumption_csv is not None:
        return InvoiceProfile(
            tier=args.tier,
            consumption=tuple(parse_consumption_csv(args.consumption_csv)),
        )
    raise ValueError("Either --invoice or --consumption-csv is required")


def apply_invoice_flags(invoice: InvoiceProfile, args: argparse.Namespace) -> InvoiceProfile:
    changes: dict[str, Any] = {}
    if args.days is not None:
        changes["days_in_period"] = args.days
    if args.daily_power is not None:
        changes["daily_power_cost_eur"] = args.daily_power
    if args.reactive is not None:
        changes["reactive_cost_eur"] = args.reactive
    return replace(invoice, **changes) if changes else invoice


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logger = configure_logging()

    args = build_parser().parse_args(argv)

    try:
        strategies = load_strategies(get_optional_path("QUOTING_STRATEGIES_PATH"))
        spreads = load_spread_table(get_optional_path("QUOTING_SPREADS_PATH"))

        if args.list_strategies:
            print(json.dumps([strategy_to_dict(strategy) for strategy in strategies], indent=2, ensure_ascii=False))
            return 0

        strategy = strategies[0]
        if args.strategy:
            found = find_strategy(strategies, args.strategy)
            if found is None:
                raise ConfigError(f"Unknown strategy id: {args.strategy}")
            strategy = found
        strategy = with_power_price(strategy, power_spread=args.power_spread, manual_power_price=args.power_price)

        invoice = apply_invoice_flags(load_invoice(args), args)
        overrides = dict(args.override)
        validate_price_overrides(invoice, overrides)

        result = simulate(invoice, strategy, spreads, manual_margin=args.margin, price_overrides=overrides)
        logger.info(
            "Simulated strategy=%s savings=%.2f EUR (%.2f%%) margin=%.6f EUR/kWh",
            strategy.id,
            result.annual_savings_eur,
            result.annual_savings_percent,
            result.applied_margin_eur_kwh,
        )

        payload = result.to_dict()
        payload["savingsScore"] = savings_score(result.annual_savings_percent)
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0
    except ConfigError:
        logger.exception("Configuration error")
        return 2
    except Exception:
        logger.exception("Simulation failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import csv
from pathlib import Path

from quoting.api.simulation import ConsumptionPeriod


REQUIRED_COLUMNS = {
    "Period",
    "kWh",
    "UnitPriceEur",
}


def _parse_decimal(value: str, column: str, line_number: int) -> float:
    # Invoices exported from Portuguese locales use a decimal comma.
    cleaned = (value or "").strip().replace(",", ".")
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError as exc:
        raise ValueError(f"Invalid {column} on line {line_number}: {value!r}") from exc


def parse_consumption_csv(path: Path) -> list[ConsumptionPeriod]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None:
            raise ValueError(f"CSV has no header row: {path}")

        normalized_headers = [header.strip() for header in reader.fieldnames]
        missing_columns = REQUIRED_COLUMNS - set(normalized_headers)
        if missing_columns:
            missing = ", ".join(sorted(missing_columns))
            raise ValueError(f"CSV missing required columns: {missing}")

        deduped: dict[str, ConsumptionPeriod] = {}
        for raw_row in reader:
            row = {str(key).strip(): value for key, value in raw_row.items() if key is not None}
            period_name = (row["Period"] or "").strip()
            if not period_name:
                continue
            deduped[period_name] = ConsumptionPeriod(
                period_name=period_name,
                energy_kwh=_parse_decimal(row["kWh"], "kWh", reader.line_num),
                current_unit_price_eur=_parse_decimal(row["UnitPriceEur"], "UnitPriceEur", reader.line_num),
            )

    return list(deduped.values())

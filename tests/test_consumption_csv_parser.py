from pathlib import Path

import pytest

from consumption_csv import parse_consumption_csv


def test_parse_consumption_csv_mapping_and_dedupe(tmp_path: Path) -> None:
    csv_text = """Period, kWh, UnitPriceEur, Notes
Ponta, 1000, 0.15, first read
Vazio,"812,5","0,0921",
Ponta, 1100, 0.16, corrected
, 5, 0.1, blank period
"""
    path = tmp_path / "consumption.csv"
    path.write_text(csv_text, encoding="utf-8-sig")

    rows = parse_consumption_csv(path)

    assert [row.period_name for row in rows] == ["Ponta", "Vazio"]
    assert rows[0].energy_kwh == 1100.0
    assert rows[0].current_unit_price_eur == 0.16
    assert rows[1].energy_kwh == 812.5
    assert rows[1].current_unit_price_eur == 0.0921


def test_parse_consumption_csv_requires_columns(tmp_path: Path) -> None:
    path = tmp_path / "consumption.csv"
    path.write_text("Period,kWh\nPonta,10\n", encoding="utf-8")

    with pytest.raises(ValueError, match="UnitPriceEur"):
        parse_consumption_csv(path)


def test_parse_consumption_csv_reports_bad_numbers(tmp_path: Path) -> None:
    path = tmp_path / "consumption.csv"
    path.write_text("Period,kWh,UnitPriceEur\nPonta,lots,0.1\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid kWh on line 2"):
        parse_consumption_csv(path)

import math

from quoting.api.currency import project_annual, round_currency


def test_round_currency_counters_binary_representation_error() -> None:
    assert round_currency(1.005) == 1.01
    assert round_currency(0.125) == 0.13


def test_round_currency_rounds_the_binary_value_not_its_repr() -> None:
    # 2.135 is stored just below the half cent; 44.894999999999996 scales onto it.
    assert round_currency(2.135) == 2.13
    assert round_currency(44.894999999999996) == 44.9
    assert project_annual(2.85, 30) == 34.67


def test_round_currency_rounds_half_away_from_zero() -> None:
    assert round_currency(-0.125) == -0.13
    assert round_currency(-373.6400000000001) == -373.64


def test_round_currency_leaves_cent_values_untouched() -> None:
    assert round_currency(0.0) == 0.0
    assert round_currency(164.96) == 164.96
    assert round_currency(45.747) == 45.75


def test_round_currency_passes_overflowing_values_through() -> None:
    assert round_currency(1e308) == 1e308


def test_round_currency_passes_nan_through() -> None:
    assert math.isnan(round_currency(float("nan")))
    assert round_currency(float("inf")) == float("inf")


def test_project_annual_uses_daily_rate() -> None:
    assert project_annual(180.0, 30) == 2190.0
    assert project_annual(210.71, 30) == 2563.64
    assert project_annual(280.0, 30) == 3406.67
    assert project_annual(100.0, 31) == round_currency(100.0 / 31 * 365)


def test_project_annual_returns_zero_for_non_positive_days() -> None:
    assert project_annual(180.0, 0) == 0.0
    assert project_annual(180.0, -5) == 0.0

from datetime import date, datetime

from goalcast.schemas.forecasting import MonetaryEvent
from goalcast.services.timeseries import (
    add_months,
    aggregate_by_month,
    chronological_values,
    get_month_key,
    half_split_trend,
    months_until,
    round_half_up,
)


def test_month_key_is_zero_padded():
    assert get_month_key(date(2024, 3, 5)) == "2024-03"
    assert get_month_key(date(2024, 11, 30)) == "2024-11"


def test_aggregate_by_month_sums_each_calendar_month():
    events = [
        MonetaryEvent(date=date(2024, 1, 3), amount=100),
        MonetaryEvent(date=date(2024, 1, 28), amount=50),
        MonetaryEvent(date=date(2024, 2, 1), amount=75),
    ]
    assert aggregate_by_month(events) == {"2024-01": 150.0, "2024-02": 75.0}


def test_aggregate_by_month_empty():
    assert aggregate_by_month([]) == {}


def test_chronological_values_orders_oldest_first():
    assert chronological_values({"2024-03": 3.0, "2023-12": 0.5, "2024-01": 1.0}) == [0.5, 1.0, 3.0]


def test_half_split_trend():
    assert half_split_trend([100, 100, 200, 200], 1.1, 0.9) == "increasing"
    assert half_split_trend([200, 200, 100, 100], 1.1, 0.9) == "decreasing"
    assert half_split_trend([100, 105], 1.1, 0.9) == "stable"
    assert half_split_trend([100, 200], 1.1, 0.9) == "increasing"


def test_half_split_trend_odd_length_puts_extra_value_in_later_half():
    # earlier [100] vs later [100, 130] -> 115 > 110
    assert half_split_trend([100, 100, 130], 1.1, 0.9) == "increasing"


def test_half_split_trend_needs_two_values():
    assert half_split_trend([], 1.1, 0.9) == "stable"
    assert half_split_trend([500], 1.1, 0.9) == "stable"


def test_add_months_clamps_day():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 10), 3) == date(2025, 2, 10)
    assert add_months(date(2024, 3, 15), -12) == date(2023, 3, 15)


def test_months_until_is_at_least_one():
    assert months_until(date(2024, 6, 15), date(2024, 12, 1)) == 6
    assert months_until(date(2024, 6, 15), date(2024, 6, 30)) == 1
    assert months_until(date(2024, 6, 15), date(2024, 1, 1)) == 1


def test_monetary_event_normalizes_dates():
    assert MonetaryEvent(date="2024-03-05T10:00:00Z", amount=1).date == date(2024, 3, 5)
    assert MonetaryEvent(date=datetime(2024, 3, 5, 23, 59), amount=1).date == date(2024, 3, 5)


def test_round_half_up():
    assert round_half_up(150.5) == 151
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(149.4) == 149
    assert round_half_up(12.25, 1) == 12.3
    assert round_half_up(0.125, 2) == 0.13

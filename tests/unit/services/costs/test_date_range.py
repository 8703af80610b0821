import pytest
from datetime import date, timedelta

from app.core.exceptions import ValidationError
from app.schemas.costs import DateRange, Granularity
from app.services.adapters.base import to_query_bounds
from app.services.costs.date_range import compute_range, granularity_for

TODAY = date(2024, 3, 15)


def test_explicit_pair_is_used_verbatim():
    result = compute_range(days_back=7, start_iso="2024-01-10", end_iso="2024-02-20", today=TODAY)
    assert result == DateRange(start=date(2024, 1, 10), end=date(2024, 2, 20))


def test_explicit_pair_accepts_full_timestamps():
    result = compute_range(start_iso="2024-01-10T00:00:00.000Z", end_iso="2024-01-10T23:59:59.999Z", today=TODAY)
    assert result.start == result.end == date(2024, 1, 10)


def test_explicit_pair_is_not_clamped_to_today():
    result = compute_range(start_iso="2024-03-01", end_iso="2024-04-30", today=TODAY)
    assert result.end == date(2024, 4, 30)


def test_days_back_ends_today():
    result = compute_range(days_back=7, today=TODAY)
    assert result.end == TODAY
    assert result.start == date(2024, 3, 9)
    assert result.days == 7


def test_single_day_back_is_today_only():
    result = compute_range(days_back=1, today=TODAY)
    assert result.start == result.end == TODAY


def test_default_is_month_to_date():
    result = compute_range(today=TODAY)
    assert result == DateRange(start=date(2024, 3, 1), end=TODAY)


def test_only_one_explicit_bound_falls_through():
    result = compute_range(start_iso="2024-01-01", today=TODAY)
    assert result.start == date(2024, 3, 1)


@pytest.mark.parametrize("days_back", [0, -3])
def test_non_positive_days_back_is_rejected(days_back):
    with pytest.raises(ValidationError):
        compute_range(days_back=days_back, today=TODAY)


def test_unparsable_date_is_rejected():
    with pytest.raises(ValidationError):
        compute_range(start_iso="yesterday", end_iso="2024-01-01", today=TODAY)


def test_compute_range_is_idempotent():
    assert compute_range(days_back=14) == compute_range(days_back=14)
    assert compute_range() == compute_range()


def test_granularity_follows_how_range_was_requested():
    assert granularity_for(days_back=30) == Granularity.DAILY
    assert granularity_for(start_iso="2024-01-01", end_iso="2024-01-31") == Granularity.DAILY
    assert granularity_for() == Granularity.MONTHLY
    assert granularity_for(start_iso="2024-01-01") == Granularity.MONTHLY


@pytest.mark.parametrize("display_end", [
    date(2024, 3, 15),
    date(2024, 1, 31),   # month boundary
    date(2023, 12, 31),  # year boundary
    date(2024, 2, 29),   # leap day
])
def test_query_end_is_display_end_plus_one_day(display_end):
    date_range = DateRange(start=display_end - timedelta(days=3), end=display_end)
    start, end_exclusive = to_query_bounds(date_range)
    assert start == date_range.start
    assert end_exclusive == display_end + timedelta(days=1)


def test_calculator_output_stays_inclusive():
    result = compute_range(days_back=1, today=date(2023, 12, 31))
    assert result.end == date(2023, 12, 31)
    assert to_query_bounds(result)[1] == date(2024, 1, 1)

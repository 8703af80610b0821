"""
Date-Range Calculator

Produces the inclusive display range for a cost query. The exclusive end
required by provider query APIs is NOT applied here; it is added exactly once
by ``app.services.adapters.base.to_query_bounds``.
"""

from datetime import date, timedelta
from typing import Optional

from app.core.exceptions import ValidationError
from app.schemas.costs import DateRange, Granularity


def _parse_iso(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} is not an ISO date: {value!r}") from e


def compute_range(
    days_back: Optional[int] = None,
    start_iso: Optional[str] = None,
    end_iso: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """
    Priority:
    1. explicit start and end, verbatim (not clamped)
    2. trailing ``days_back`` days ending today
    3. first day of the current month through today
    """
    today = today or date.today()

    if start_iso and end_iso:
        return DateRange(start=_parse_iso(start_iso, "startDate"), end=_parse_iso(end_iso, "endDate"))

    if days_back is not None:
        if days_back < 1:
            raise ValidationError(f"days_back must be at least 1, got {days_back}")
        return DateRange(start=today - timedelta(days=days_back - 1), end=today)

    return DateRange(start=today.replace(day=1), end=today)


def granularity_for(
    days_back: Optional[int] = None,
    start_iso: Optional[str] = None,
    end_iso: Optional[str] = None,
) -> Granularity:
    if days_back is not None or (start_iso and end_iso):
        return Granularity.DAILY
    return Granularity.MONTHLY

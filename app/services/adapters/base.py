from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Literal, Tuple

from app.core.exceptions import ValidationError
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import DateRange, Granularity


def to_query_bounds(date_range: DateRange) -> Tuple[date, date]:
    """
    Convert an inclusive display range into the ``[start, end)`` pair cost APIs expect.

    This is the only place the +1 day end adjustment happens. Adapters must
    build their time periods from this and never from ``date_range.end`` directly.
    """
    return date_range.start, date_range.end + timedelta(days=1)


@dataclass(frozen=True)
class CostFilter:
    kind: Literal["tag", "dimension"]
    key: str
    value: str


def parse_filters(tags: Iterable[str] = (), dimensions: Iterable[str] = ()) -> List[CostFilter]:
    """Parse ``Key=Value`` equality filters. All returned filters are ANDed together."""
    filters = []
    for kind, raw_items in (("tag", tags), ("dimension", dimensions)):
        for raw in raw_items or ():
            key, sep, value = raw.partition("=")
            if not sep or not key.strip() or not value.strip():
                raise ValidationError(f"Invalid {kind} filter {raw!r}, expected Key=Value")
            filters.append(CostFilter(kind=kind, key=key.strip(), value=value.strip()))
    return filters


class BaseCostAdapter(ABC):
    """
    Abstract Base Class for provider cost-query adapters.

    Standardizes the interface for:
    - Account identity lookup
    - Total cost over a range
    - Cost grouped by one dimension over a range

    Adapters normalize provider responses into plain floats and mappings; no
    provider field names leave this layer.
    """

    provider: CloudProvider
    default_group_by: str

    def __init__(self, credential: Credential, region: str):
        self.credential = credential
        self.region = region

    @abstractmethod
    async def get_account_id(self) -> str:
        """Distinct identity call for the resolved credential."""

    @abstractmethod
    async def query_total(
        self,
        date_range: DateRange,
        granularity: Granularity,
        filters: List[CostFilter],
    ) -> float:
        """Sum of every period bucket over the range (unrounded)."""

    @abstractmethod
    async def query_grouped(
        self,
        date_range: DateRange,
        granularity: Granularity,
        group_by: str,
        filters: List[CostFilter],
    ) -> Dict[str, float]:
        """Cost per dimension value summed over every period bucket (unrounded, unordered)."""

    async def close(self) -> None:
        """Release SDK clients. Safe to call more than once."""

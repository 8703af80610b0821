"""
Cost, Daily Series and Forecast Schemas - Normalization Layer

Every provider response is converted into these models before it leaves
the Cost Aggregator / Daily-Cost Fetcher boundary.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import ConfigDict, Field

from app.schemas.base import CamelModel


class Granularity(str, Enum):
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"


class DateRange(CamelModel):
    """Inclusive display range. Provider queries add one day to ``end`` (see adapters.base.to_query_bounds)."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class CostQuery(CamelModel):
    profile_name: str
    time_range_days: Optional[int] = None
    start_date_iso: Optional[str] = None
    end_date_iso: Optional[str] = None
    group_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list, description="Key=Value tag equality filters")
    dimensions: List[str] = Field(default_factory=list, description="Key=Value dimension equality filters")


class CostQueryResult(CamelModel):
    """One profile's cost over a range. ``status='error'`` replaces every failure mode."""
    profile_name: str
    provider: str
    account_id: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    total_cost: float = 0.0
    cost_by_dimension: Dict[str, float] = Field(default_factory=dict)  # highest first
    status: Literal["success", "error"] = "success"
    message: Optional[str] = None


class ProviderCosts(CamelModel):
    aws: float = 0.0
    azure: float = 0.0
    gcp: float = 0.0

    @property
    def total(self) -> float:
        return self.aws + self.azure + self.gcp


class DailyProviderCost(CamelModel):
    date: date
    aws: float = 0.0
    azure: float = 0.0
    gcp: float = 0.0
    total: float = 0.0


class RegressionModel(CamelModel):
    slope: float
    intercept: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


class ForecastPoint(CamelModel):
    date: date
    forecasted: float
    confidence_upper: float
    confidence_lower: float
    breakdown: ProviderCosts


class ForecastResult(CamelModel):
    forecast_days: int
    historical_days: int
    historical: List[DailyProviderCost]
    forecast: List[ForecastPoint]
    trend: Literal["increasing", "decreasing"]
    monthly_growth_rate: float


class GCPCredentials(CamelModel):
    project_id: Optional[str] = None
    service_account_json: Optional[str] = None
    billing_account_id: Optional[str] = None

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.config import Settings, get_settings
from app.core.dependencies import get_daily_cost_fetcher
from app.core.exceptions import ValidationError
from app.schemas.base import CamelModel, CloudProvider
from app.schemas.costs import GCPCredentials
from app.services.costs.daily import DailyCostFetcher

router = APIRouter(tags=["Forecasting"])


class CostTrendsRequest(CamelModel):
    days: int = 7
    connected_providers: List[CloudProvider] = Field(default_factory=list)
    gcp_credentials: Optional[GCPCredentials] = None


@router.post("/cost-trends")
async def get_cost_trends(
    body: CostTrendsRequest,
    fetcher: DailyCostFetcher = Depends(get_daily_cost_fetcher),
    settings: Settings = Depends(get_settings),
):
    """Daily spend per provider for the trailing ``days`` days, oldest first."""
    if not 1 <= body.days <= settings.FORECAST_MAX_HISTORY_DAYS:
        raise ValidationError(f"days must be between 1 and {settings.FORECAST_MAX_HISTORY_DAYS}")

    trends = await fetcher.fetch_series(body.days, body.connected_providers, body.gcp_credentials)
    return {
        "success": True,
        "days": body.days,
        "trends": [t.model_dump(by_alias=True, mode="json") for t in trends],
    }

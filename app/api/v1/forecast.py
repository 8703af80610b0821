from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.config import Settings, get_settings
from app.core.dependencies import get_forecaster
from app.schemas.base import CamelModel, CloudProvider
from app.schemas.costs import GCPCredentials
from app.services.analysis.forecaster import CostForecaster

router = APIRouter(tags=["Forecasting"])
logger = structlog.get_logger()


# --- Schemas ---
class ForecastRequest(CamelModel):
    days: Optional[int] = Field(None, description="Forecast horizon (alias of forecastDays)")
    forecast_days: Optional[int] = None
    historical_days: Optional[int] = None
    connected_providers: List[CloudProvider] = Field(default_factory=list)
    gcp_credentials: Optional[GCPCredentials] = None


# --- Endpoints ---

@router.post("/forecast")
async def create_forecast(
    body: ForecastRequest,
    forecaster: CostForecaster = Depends(get_forecaster),
    settings: Settings = Depends(get_settings),
):
    """
    Linear-regression forecast of daily spend across the connected providers.

    GCP amounts are estimates derived from running instance counts.
    """
    forecast_days = next(
        (v for v in (body.forecast_days, body.days) if v is not None), settings.FORECAST_DEFAULT_DAYS
    )
    historical_days = (
        body.historical_days if body.historical_days is not None else settings.FORECAST_HISTORICAL_DAYS
    )

    result = await forecaster.forecast(
        historical_days=historical_days,
        forecast_days=forecast_days,
        connected_providers=body.connected_providers,
        gcp_credentials=body.gcp_credentials,
    )
    return {"success": True, **result.model_dump(by_alias=True, mode="json")}

"""
Linear Cost Forecasting Engine

Fits ordinary least squares models of daily cost against the day index and
projects them forward with a residual-based confidence band.

Known simplifications:
- the band is ``1.96 * sigma * sqrt(1 + 1/n)`` using the in-sample residual
  standard deviation, so its width is constant across the horizon instead of
  growing with distance from the training window;
- a slope of exactly 0 reports the trend as "decreasing".
"""

import math
from datetime import date, timedelta
from typing import Collection, List, Optional, Sequence

import numpy as np
import structlog

from app.core.amounts import clamp_non_negative, round_currency
from app.core.config import Settings, get_settings
from app.core.exceptions import ValidationError
from app.schemas.costs import (
    DailyProviderCost,
    ForecastPoint,
    ForecastResult,
    GCPCredentials,
    ProviderCosts,
    RegressionModel,
)
from app.services.costs.daily import DailyCostFetcher

logger = structlog.get_logger()

Z_95 = 1.96
DAYS_PER_MONTH = 30
MIN_HISTORICAL_DAYS = 2


def fit_linear(values: Sequence[float]) -> RegressionModel:
    """
    Closed-form OLS over x = 0..n-1.

    slope = (n*Sxy - Sx*Sy) / (n*Sxx - Sx^2), intercept = (Sy - slope*Sx) / n.
    With no x variance (n <= 1) the model is flat at the mean.
    """
    y = np.asarray(values, dtype=float)
    n = y.size
    if n == 0:
        return RegressionModel(slope=0.0, intercept=0.0)

    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    denominator = n * (x * x).sum() - sum_x * sum_x
    if denominator == 0:
        return RegressionModel(slope=0.0, intercept=float(sum_y / n))

    slope = (n * (x * y).sum() - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return RegressionModel(slope=float(slope), intercept=float(intercept))


def residual_std_dev(values: Sequence[float], model: RegressionModel) -> float:
    """Population standard deviation of the residuals: sqrt(mean(r^2))."""
    y = np.asarray(values, dtype=float)
    if y.size == 0:
        return 0.0
    predicted = model.slope * np.arange(y.size, dtype=float) + model.intercept
    residuals = y - predicted
    return float(np.sqrt(np.mean(residuals ** 2)))


def monthly_growth_rate(values: Sequence[float], model: RegressionModel) -> float:
    if len(values) == 0:
        return 0.0
    mean = float(np.mean(values))
    if mean == 0:
        return 0.0
    return round(model.slope / mean * DAYS_PER_MONTH * 100, 2)


def project_forecast(
    history: List[DailyProviderCost],
    forecast_days: int,
    start: Optional[date] = None,
) -> ForecastResult:
    """
    Project ``forecast_days`` points from a dense, oldest-first history.

    Forecast indices continue the historical index space (x = n + i). Dates
    continue from the day after the last historical day unless ``start`` is given.
    """
    n = len(history)
    totals = [d.total for d in history]

    total_model = fit_linear(totals)
    aws_model = fit_linear([d.aws for d in history])
    azure_model = fit_linear([d.azure for d in history])
    gcp_model = fit_linear([d.gcp for d in history])

    std_dev = residual_std_dev(totals, total_model)
    interval = Z_95 * std_dev * math.sqrt(1 + 1 / n) if n else 0.0

    if start is None:
        start = history[-1].date + timedelta(days=1) if history else date.today() + timedelta(days=1)

    points = []
    for i in range(forecast_days):
        x = n + i
        forecasted = total_model.predict(x)
        points.append(ForecastPoint(
            date=start + timedelta(days=i),
            forecasted=round_currency(clamp_non_negative(forecasted)),
            confidence_upper=round_currency(clamp_non_negative(forecasted + interval)),
            confidence_lower=round_currency(clamp_non_negative(forecasted - interval)),
            breakdown=ProviderCosts(
                aws=round_currency(clamp_non_negative(aws_model.predict(x))),
                azure=round_currency(clamp_non_negative(azure_model.predict(x))),
                gcp=round_currency(clamp_non_negative(gcp_model.predict(x))),
            ),
        ))

    return ForecastResult(
        forecast_days=forecast_days,
        historical_days=n,
        historical=history,
        forecast=points,
        trend="increasing" if total_model.slope > 0 else "decreasing",
        monthly_growth_rate=monthly_growth_rate(totals, total_model),
    )


class CostForecaster:
    """Pulls the trailing daily series and projects it forward."""

    def __init__(self, fetcher: DailyCostFetcher, settings: Optional[Settings] = None):
        self.fetcher = fetcher
        self.settings = settings or get_settings()

    def _validate(self, historical_days: int, forecast_days: int) -> None:
        if not isinstance(historical_days, int) or isinstance(historical_days, bool):
            raise ValidationError("historicalDays must be an integer")
        if not isinstance(forecast_days, int) or isinstance(forecast_days, bool):
            raise ValidationError("forecastDays must be an integer")
        if not MIN_HISTORICAL_DAYS <= historical_days <= self.settings.FORECAST_MAX_HISTORY_DAYS:
            raise ValidationError(
                f"historicalDays must be between {MIN_HISTORICAL_DAYS} and {self.settings.FORECAST_MAX_HISTORY_DAYS}",
                details={"historical_days": historical_days},
            )
        if not 1 <= forecast_days <= self.settings.FORECAST_MAX_DAYS:
            raise ValidationError(
                f"forecastDays must be between 1 and {self.settings.FORECAST_MAX_DAYS}",
                details={"forecast_days": forecast_days},
            )

    async def forecast(
        self,
        historical_days: int,
        forecast_days: int,
        connected_providers: Collection[str],
        gcp_credentials: Optional[GCPCredentials] = None,
        today: Optional[date] = None,
    ) -> ForecastResult:
        self._validate(historical_days, forecast_days)

        history = await self.fetcher.fetch_series(
            historical_days, connected_providers, gcp_credentials, today=today
        )
        result = project_forecast(history, forecast_days)

        logger.info(
            "forecast_generated",
            historical_days=historical_days,
            forecast_days=forecast_days,
            providers=sorted(connected_providers),
            trend=result.trend,
            monthly_growth_rate=result.monthly_growth_rate,
        )
        return result

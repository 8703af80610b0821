import pytest
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

from app.core.exceptions import ValidationError
from app.schemas.costs import DailyProviderCost, RegressionModel
from app.services.analysis.forecaster import (
    CostForecaster,
    fit_linear,
    monthly_growth_rate,
    project_forecast,
    residual_std_dev,
)

START = date(2024, 1, 1)


def history(totals, aws_share=1.0):
    return [
        DailyProviderCost(
            date=START + timedelta(days=i),
            aws=total * aws_share,
            azure=total * (1 - aws_share),
            gcp=0.0,
            total=total,
        )
        for i, total in enumerate(totals)
    ]


def test_flat_series_has_zero_band_and_reports_decreasing():
    result = project_forecast(history([100] * 7), 14)

    assert result.historical_days == 7
    assert len(result.forecast) == 14
    assert all(p.forecasted == 100.0 for p in result.forecast)
    assert all(p.confidence_upper == p.confidence_lower == 100.0 for p in result.forecast)
    assert result.trend == "decreasing"
    assert result.monthly_growth_rate == 0.0


def test_linear_series_extrapolates_from_next_index():
    result = project_forecast(history([100, 110, 120, 130, 140, 150, 160]), 14)

    assert result.forecast[0].forecasted == pytest.approx(170.0)
    assert result.forecast[13].forecasted == pytest.approx(300.0)
    assert result.trend == "increasing"
    # slope 10 over mean 130, scaled to 30 days
    assert result.monthly_growth_rate == 230.77


def test_forecast_dates_follow_last_historical_day():
    result = project_forecast(history([1, 2, 3]), 2)
    assert [p.date for p in result.forecast] == [date(2024, 1, 4), date(2024, 1, 5)]


def test_breakdown_uses_per_provider_models():
    result = project_forecast(history([100, 110, 120, 130], aws_share=0.5), 1)
    point = result.forecast[0]
    assert point.breakdown.aws == pytest.approx(70.0)
    assert point.breakdown.azure == pytest.approx(70.0)
    assert point.breakdown.gcp == 0.0


def test_values_are_clamped_and_bounds_ordered():
    result = project_forecast(history([50, 40, 30, 20, 10, 5, 1]), 30)
    for point in result.forecast:
        assert 0.0 <= point.confidence_lower <= point.forecasted <= point.confidence_upper
        assert point.breakdown.aws >= 0.0
    assert result.forecast[-1].forecasted == 0.0


def test_confidence_interval_formula():
    totals = [10, 14, 9, 15, 11]
    model = fit_linear(totals)
    sigma = residual_std_dev(totals, model)
    result = project_forecast(history(totals), 1)
    point = result.forecast[0]
    expected = 1.96 * sigma * (1 + 1 / 5) ** 0.5
    predicted = model.predict(5)
    assert point.confidence_upper == pytest.approx(round(predicted + expected, 2), abs=0.011)
    assert point.confidence_lower == pytest.approx(round(predicted - expected, 2), abs=0.011)


def test_fit_linear_degenerate_inputs():
    assert fit_linear([]) == RegressionModel(slope=0.0, intercept=0.0)
    assert fit_linear([42.0]) == RegressionModel(slope=0.0, intercept=42.0)


def test_growth_rate_is_zero_without_spend():
    assert monthly_growth_rate([0, 0, 0], RegressionModel(slope=0.0, intercept=0.0)) == 0.0
    assert monthly_growth_rate([], RegressionModel(slope=1.0, intercept=0.0)) == 0.0


@pytest.fixture
def forecaster(settings):
    fetcher = MagicMock()
    fetcher.fetch_series = AsyncMock(return_value=history([100, 110, 120]))
    return CostForecaster(fetcher, settings)


@pytest.mark.asyncio
async def test_forecast_fetches_requested_history(forecaster):
    today = date(2024, 1, 3)
    result = await forecaster.forecast(3, 5, ["aws"], today=today)

    forecaster.fetcher.fetch_series.assert_awaited_once_with(3, ["aws"], None, today=today)
    assert result.forecast_days == 5
    assert result.forecast[0].date == date(2024, 1, 4)


@pytest.mark.asyncio
@pytest.mark.parametrize("historical_days,forecast_days", [
    (1, 30),
    (0, 30),
    (14, 0),
    (14, 366),
    (367, 30),
    ("14", 30),
    (14, 2.5),
])
async def test_forecast_rejects_out_of_range_inputs(forecaster, historical_days, forecast_days):
    with pytest.raises(ValidationError):
        await forecaster.forecast(historical_days, forecast_days, ["aws"])
    forecaster.fetcher.fetch_series.assert_not_awaited()

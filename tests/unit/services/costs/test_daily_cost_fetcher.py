import asyncio
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from app.schemas.costs import CostQueryResult, GCPCredentials, ProviderCosts
from app.services.costs.daily import DailyCostFetcher, gcp_credential_from_request

DAY = date(2024, 1, 15)


def ok(profile, provider, total):
    return CostQueryResult(profile_name=profile, provider=provider, total_cost=total, status="success")


def failed(profile, provider, message="denied"):
    return CostQueryResult(profile_name=profile, provider=provider, status="error", message=message)


def make_fetcher(settings, get_cost, gcp_estimate=None):
    aggregator = MagicMock()
    aggregator.get_cost = AsyncMock(side_effect=get_cost)
    gcp_cls = MagicMock()
    gcp_cls.return_value.estimate_daily_cost = AsyncMock(return_value=gcp_estimate or 0.0)
    return DailyCostFetcher(aggregator, settings, gcp_adapter_cls=gcp_cls), aggregator, gcp_cls


@pytest.mark.asyncio
async def test_only_connected_providers_are_queried(settings):
    async def get_cost(provider, query):
        return ok(query.profile_name, provider.value, 42.5)

    fetcher, aggregator, gcp_cls = make_fetcher(settings, get_cost)
    costs = await fetcher.fetch_day(DAY, ["aws"])

    assert costs == ProviderCosts(aws=42.5, azure=0.0, gcp=0.0)
    assert aggregator.get_cost.await_count == 1
    gcp_cls.assert_not_called()


@pytest.mark.asyncio
async def test_single_day_query_is_inclusive_range(settings):
    async def get_cost(provider, query):
        assert query.start_date_iso == "2024-01-15"
        assert query.end_date_iso == "2024-01-15"
        return ok(query.profile_name, provider.value, 1.0)

    fetcher, _, _ = make_fetcher(settings, get_cost)
    await fetcher.fetch_day(DAY, ["aws", "azure"])


@pytest.mark.asyncio
async def test_profiles_are_summed(settings):
    settings.AWS_PROFILES = ["prod", "dev"]

    async def get_cost(provider, query):
        return ok(query.profile_name, provider.value, {"prod": 10.125, "dev": 5.0}[query.profile_name])

    fetcher, _, _ = make_fetcher(settings, get_cost)
    costs = await fetcher.fetch_day(DAY, ["aws"])
    assert costs.aws == 15.13


@pytest.mark.asyncio
async def test_partial_profile_failure_keeps_successes(settings):
    settings.AWS_PROFILES = ["prod", "dev"]

    async def get_cost(provider, query):
        if query.profile_name == "dev":
            return failed("dev", provider.value)
        return ok("prod", provider.value, 10.0)

    fetcher, _, _ = make_fetcher(settings, get_cost)
    assert (await fetcher.fetch_day(DAY, ["aws"])).aws == 10.0


@pytest.mark.asyncio
async def test_failed_provider_degrades_to_zero(settings):
    async def get_cost(provider, query):
        if provider.value == "azure":
            return failed(query.profile_name, "azure", "subscription disabled")
        return ok(query.profile_name, provider.value, 20.0)

    fetcher, _, _ = make_fetcher(settings, get_cost)
    costs = await fetcher.fetch_day(DAY, ["aws", "azure"])
    assert costs == ProviderCosts(aws=20.0, azure=0.0, gcp=0.0)


@pytest.mark.asyncio
async def test_slow_provider_times_out_to_zero(settings):
    async def get_cost(provider, query):
        if provider.value == "azure":
            await asyncio.sleep(5)
        return ok(query.profile_name, provider.value, 7.0)

    fetcher, _, _ = make_fetcher(settings, get_cost)
    costs = await fetcher.fetch_day(DAY, ["aws", "azure"])
    assert costs.aws == 7.0
    assert costs.azure == 0.0


@pytest.mark.asyncio
async def test_gcp_estimate_requires_project_id(settings):
    fetcher, aggregator, gcp_cls = make_fetcher(settings, AsyncMock(), gcp_estimate=4.8387)

    skipped = await fetcher.fetch_day(DAY, ["gcp"], GCPCredentials())
    assert skipped.gcp == 0.0
    gcp_cls.assert_not_called()

    estimated = await fetcher.fetch_day(DAY, ["gcp"], GCPCredentials(project_id="my-project"))
    assert estimated.gcp == 4.84
    credential, region = gcp_cls.call_args.args
    assert credential.values["project_id"] == "my-project"
    assert region == settings.GCP_DEFAULT_REGION
    gcp_cls.return_value.estimate_daily_cost.assert_awaited_with(DAY)
    aggregator.get_cost.assert_not_awaited()


def test_gcp_credential_from_request():
    assert gcp_credential_from_request(None) is None
    assert gcp_credential_from_request(GCPCredentials(service_account_json="{}")) is None
    credential = gcp_credential_from_request(GCPCredentials(project_id="p1", service_account_json="{}"))
    assert credential.source == "request"
    assert credential.profile_name == "p1"


@pytest.mark.asyncio
async def test_fetch_series_is_oldest_first_and_zero_fills_failed_days(settings):
    fetcher, _, _ = make_fetcher(settings, AsyncMock())

    async def fetch_day(day, connected_providers, gcp_credentials=None):
        if day == date(2024, 1, 14):
            raise RuntimeError("boom")
        return ProviderCosts(aws=day.day * 1.0, azure=0.5, gcp=0.25)

    fetcher.fetch_day = fetch_day
    series = await fetcher.fetch_series(3, ["aws", "azure", "gcp"], today=DAY)

    assert [d.date for d in series] == [date(2024, 1, 13), date(2024, 1, 14), date(2024, 1, 15)]
    assert series[0].total == 13.75
    assert (series[1].aws, series[1].azure, series[1].gcp, series[1].total) == (0.0, 0.0, 0.0, 0.0)
    assert series[2].aws == 15.0


@pytest.mark.asyncio
async def test_aws_only_fetch_ignores_supplied_gcp_credentials(settings):
    async def get_cost(provider, query):
        return ok(query.profile_name, provider.value, 3.0)

    fetcher, _, gcp_cls = make_fetcher(settings, get_cost, gcp_estimate=9.0)
    costs = await fetcher.fetch_day(DAY, ["aws"], GCPCredentials(project_id="p"))

    assert costs.aws == 3.0
    assert costs.gcp == 0.0
    gcp_cls.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_series_bounds_calls_in_flight(settings):
    settings.AWS_PROFILES = ["prod", "dev"]
    settings.FORECAST_FETCH_CONCURRENCY = 4
    in_flight = 0
    peak = 0

    async def get_cost(provider, query):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return ok(query.profile_name, provider.value, 1.0)

    fetcher, aggregator, _ = make_fetcher(settings, get_cost)
    series = await fetcher.fetch_series(60, ["aws"], today=DAY)

    assert len(series) == 60
    assert all(d.aws == 2.0 for d in series)
    assert aggregator.get_cost.await_count == 120
    # Two profiles per day, four days at a time
    assert peak <= 8
    assert peak > 1

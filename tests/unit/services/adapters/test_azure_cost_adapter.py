import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError

from app.core.exceptions import IdentityLookupFailed, ProviderQueryFailed, ValidationError
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import DateRange, Granularity
from app.services.adapters.azure import AzureCostAdapter, build_query_filter
from app.services.adapters.base import parse_filters

RANGE = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))


class AsyncIter:
    def __init__(self, items):
        self.items = items

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.items:
            raise StopAsyncIteration
        return self.items.pop(0)


def column(name):
    col = MagicMock()
    col.name = name
    return col


def query_result(columns, rows):
    result = MagicMock()
    result.columns = [column(c) for c in columns]
    result.rows = rows
    return result


@pytest.fixture
def adapter(azure_credential):
    return AzureCostAdapter(azure_credential, "eastus")


def test_requires_subscription_id():
    credential = Credential(profile_name="x", provider=CloudProvider.AZURE, values={}, source="saved")
    with pytest.raises(ValidationError):
        AzureCostAdapter(credential, "eastus")


@pytest.mark.asyncio
async def test_get_account_id_returns_subscription(adapter):
    client = MagicMock()
    client.resource_groups.list.return_value = AsyncIter([MagicMock()])
    with patch.object(AzureCostAdapter, "_get_resource_client", new_callable=AsyncMock) as mock_get_client:
        mock_get_client.return_value = client
        assert await adapter.get_account_id() == "sub-id"


@pytest.mark.asyncio
async def test_identity_failure_is_typed(adapter):
    with patch.object(AzureCostAdapter, "_get_resource_client", side_effect=ClientAuthenticationError("bad secret")):
        with pytest.raises(IdentityLookupFailed, match="bad secret"):
            await adapter.get_account_id()


@pytest.mark.asyncio
async def test_query_total_sums_rows_and_uses_inclusive_upper_bound(adapter):
    cost_client = MagicMock()
    cost_client.query.usage = AsyncMock(return_value=query_result(
        ["PreTaxCost", "UsageDate", "Currency"],
        [[10.5, 20240101, "USD"], [5.25, 20240102, "USD"]],
    ))

    with patch.object(AzureCostAdapter, "_get_cost_client", new_callable=AsyncMock) as mock_get_client:
        mock_get_client.return_value = cost_client
        total = await adapter.query_total(RANGE, Granularity.DAILY, [])

    assert total == pytest.approx(15.75)
    kwargs = cost_client.query.usage.call_args.kwargs
    assert kwargs["scope"] == "subscriptions/sub-id"
    definition = kwargs["parameters"]
    assert definition.time_period.from_property == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert definition.time_period.to == datetime(2024, 1, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)
    assert definition.dataset.granularity == "Daily"
    assert definition.dataset.grouping is None


@pytest.mark.asyncio
async def test_monthly_query_has_no_daily_granularity(adapter):
    cost_client = MagicMock()
    cost_client.query.usage = AsyncMock(return_value=query_result(["PreTaxCost"], []))
    with patch.object(AzureCostAdapter, "_get_cost_client", new_callable=AsyncMock) as mock_get_client:
        mock_get_client.return_value = cost_client
        assert await adapter.query_total(RANGE, Granularity.MONTHLY, []) == 0.0
    assert cost_client.query.usage.call_args.kwargs["parameters"].dataset.granularity is None


@pytest.mark.asyncio
async def test_query_grouped_finds_columns_by_name(adapter):
    cost_client = MagicMock()
    cost_client.query.usage = AsyncMock(return_value=query_result(
        ["UsageDate", "ServiceName", "PreTaxCost", "Currency"],
        [
            [20240101, "Virtual Machines", 8.0, "USD"],
            [20240101, "Storage", 2.0, "USD"],
            [20240102, "Virtual Machines", 4.0, "USD"],
        ],
    ))
    with patch.object(AzureCostAdapter, "_get_cost_client", new_callable=AsyncMock) as mock_get_client:
        mock_get_client.return_value = cost_client
        grouped = await adapter.query_grouped(RANGE, Granularity.DAILY, "ServiceName", [])

    assert grouped == {"Virtual Machines": 12.0, "Storage": 2.0}
    grouping = cost_client.query.usage.call_args.kwargs["parameters"].dataset.grouping
    assert grouping[0].name == "ServiceName"


@pytest.mark.asyncio
async def test_query_failure_raises_provider_query_failed(adapter):
    cost_client = MagicMock()
    cost_client.query.usage = AsyncMock(side_effect=HttpResponseError("Forbidden"))
    with patch.object(AzureCostAdapter, "_get_cost_client", new_callable=AsyncMock) as mock_get_client:
        mock_get_client.return_value = cost_client
        with pytest.raises(ProviderQueryFailed, match="Azure cost query failed"):
            await adapter.query_total(RANGE, Granularity.DAILY, [])


def test_filters_are_anded():
    query_filter = build_query_filter(parse_filters(tags=["env=prod"], dimensions=["ResourceLocation=eastus"]))
    assert len(query_filter.and_property) == 2
    assert query_filter.and_property[0].tags.name == "env"
    assert query_filter.and_property[1].dimensions.values == ["eastus"]


def test_single_filter_is_not_wrapped():
    query_filter = build_query_filter(parse_filters(dimensions=["ServiceName=Storage"]))
    assert query_filter.and_property is None
    assert query_filter.dimensions.operator == "In"

from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging
import structlog
from azure.mgmt.costmanagement.aio import CostManagementClient
from azure.mgmt.costmanagement.models import (
    QueryAggregation,
    QueryComparisonExpression,
    QueryDataset,
    QueryDefinition,
    QueryFilter,
    QueryGrouping,
    QueryTimePeriod,
)
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.core.exceptions import AzureError, ServiceRequestError, ServiceResponseError
import tenacity

from app.core.exceptions import IdentityLookupFailed, ProviderQueryFailed
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import DateRange, Granularity
from app.services.adapters.base import BaseCostAdapter, CostFilter, to_query_bounds
from app.services.connections.azure import build_azure_credential, subscription_id_of

logger = structlog.get_logger()

# Retry decorator for Azure transient transport failures
azure_retry = tenacity.retry(
    retry=tenacity.retry_if_exception_type((ServiceRequestError, ServiceResponseError)),
    wait=tenacity.wait_exponential(multiplier=1, min=2, max=10),
    stop=tenacity.stop_after_attempt(3),
    before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

COST_COLUMNS = ("PreTaxCost", "Cost", "CostUSD")


def build_query_filter(filters: List[CostFilter]) -> Optional[QueryFilter]:
    clauses = []
    for f in filters:
        expression = QueryComparisonExpression(name=f.key, operator="In", values=[f.value])
        if f.kind == "tag":
            clauses.append(QueryFilter(tags=expression))
        else:
            clauses.append(QueryFilter(dimensions=expression))
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return QueryFilter(and_property=clauses)


def _column_index(columns, names) -> Optional[int]:
    for i, column in enumerate(columns or []):
        if column.name in names:
            return i
    return None


class AzureCostAdapter(BaseCostAdapter):
    """
    Azure Cost Management Adapter using the official Azure SDK.
    """
    provider = CloudProvider.AZURE
    default_group_by = "ServiceName"

    def __init__(self, credential: Credential, region: str):
        super().__init__(credential, region)
        self.subscription_id = subscription_id_of(credential)
        self.scope = f"subscriptions/{self.subscription_id}"
        self._credential = None
        self._cost_client = None
        self._resource_client = None

    async def _get_credentials(self):
        if not self._credential:
            self._credential = build_azure_credential(self.credential)
        return self._credential

    async def _get_cost_client(self):
        if not self._cost_client:
            creds = await self._get_credentials()
            self._cost_client = CostManagementClient(credential=creds)
        return self._cost_client

    async def _get_resource_client(self):
        if not self._resource_client:
            creds = await self._get_credentials()
            self._resource_client = ResourceManagementClient(
                credential=creds,
                subscription_id=self.subscription_id
            )
        return self._resource_client

    @azure_retry
    async def _check_subscription(self) -> None:
        client = await self._get_resource_client()
        async for _ in client.resource_groups.list():
            break

    async def get_account_id(self) -> str:
        """The subscription is the account; listing one resource group proves the credential can reach it."""
        try:
            await self._check_subscription()
        except AzureError as e:
            logger.error("azure_identity_lookup_failed", profile=self.credential.profile_name, error=str(e))
            raise IdentityLookupFailed(
                f"Azure subscription lookup failed: {e}",
                details={"subscription_id": self.subscription_id},
            ) from e
        return self.subscription_id

    def _query_definition(
        self,
        date_range: DateRange,
        granularity: Granularity,
        filters: List[CostFilter],
        group_by: Optional[str] = None,
    ) -> QueryDefinition:
        start, end_exclusive = to_query_bounds(date_range)
        # The Query API takes an inclusive datetime upper bound
        period_to = datetime.combine(end_exclusive, time.min, tzinfo=timezone.utc) - timedelta(microseconds=1)
        return QueryDefinition(
            type="ActualCost",
            timeframe="Custom",
            time_period=QueryTimePeriod(
                from_property=datetime.combine(start, time.min, tzinfo=timezone.utc),
                to=period_to,
            ),
            dataset=QueryDataset(
                granularity="Daily" if granularity == Granularity.DAILY else None,
                aggregation={
                    "totalCost": QueryAggregation(name="PreTaxCost", function="Sum")
                },
                grouping=[QueryGrouping(type="Dimension", name=group_by)] if group_by else None,
                filter=build_query_filter(filters),
            )
        )

    @azure_retry
    async def _usage(self, definition: QueryDefinition) -> Any:
        client = await self._get_cost_client()
        return await client.query.usage(scope=self.scope, parameters=definition)

    async def _run_query(self, definition: QueryDefinition) -> Any:
        try:
            return await self._usage(definition)
        except AzureError as e:
            logger.error("azure_cost_fetch_failed", profile=self.credential.profile_name, error=str(e))
            raise ProviderQueryFailed(
                f"Azure cost query failed: {e}",
                details={"subscription_id": self.subscription_id},
            ) from e

    async def query_total(self, date_range: DateRange, granularity: Granularity, filters: List[CostFilter]) -> float:
        response = await self._run_query(self._query_definition(date_range, granularity, filters))
        if not response or not response.rows:
            return 0.0
        cost_idx = _column_index(response.columns, COST_COLUMNS)
        cost_idx = 0 if cost_idx is None else cost_idx
        return sum(float(row[cost_idx]) for row in response.rows)

    async def query_grouped(
        self,
        date_range: DateRange,
        granularity: Granularity,
        group_by: str,
        filters: List[CostFilter],
    ) -> Dict[str, float]:
        response = await self._run_query(self._query_definition(date_range, granularity, filters, group_by))
        grouped: Dict[str, float] = {}
        if not response or not response.rows:
            return grouped
        cost_idx = _column_index(response.columns, COST_COLUMNS)
        label_idx = _column_index(response.columns, (group_by,))
        if cost_idx is None or label_idx is None:
            raise ProviderQueryFailed(f"Azure response is missing cost or {group_by} column")
        for row in response.rows:
            label = str(row[label_idx]) if row[label_idx] else "Unknown"
            grouped[label] = grouped.get(label, 0.0) + float(row[cost_idx])
        return grouped

    async def close(self) -> None:
        for client in (self._cost_client, self._resource_client, self._credential):
            if client is not None:
                await client.close()
        self._cost_client = self._resource_client = self._credential = None

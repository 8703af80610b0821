import asyncio
import calendar
from datetime import date
from typing import Dict, List, Optional

import structlog
from google.api_core.exceptions import GoogleAPIError
from google.cloud import compute_v1

from app.core.config import get_settings
from app.core.exceptions import IdentityLookupFailed, ProviderQueryFailed
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import DateRange, Granularity
from app.services.adapters.base import BaseCostAdapter, CostFilter
from app.services.connections.gcp import build_gcp_credentials, project_id_of

logger = structlog.get_logger()


class GCPComputeAdapter(BaseCostAdapter):
    """
    GCP adapter backed by the Compute Engine API.

    GCP exposes spend only through a billing export, which this engine does
    not ingest. Daily cost is therefore an ESTIMATE: running instances times a
    flat monthly unit cost, spread over the days of the month. It is not
    billing-accurate and must not be presented as such.
    """
    provider = CloudProvider.GCP
    default_group_by = "SERVICE"

    def __init__(self, credential: Credential, region: str, monthly_instance_cost: Optional[float] = None):
        super().__init__(credential, region)
        self.project_id = project_id_of(credential)
        self._credentials = build_gcp_credentials(credential.values.get("service_account_json"))
        if monthly_instance_cost is None:
            monthly_instance_cost = get_settings().GCP_MONTHLY_INSTANCE_COST
        self.monthly_instance_cost = monthly_instance_cost

    def _get_instances_client(self) -> compute_v1.InstancesClient:
        return compute_v1.InstancesClient(credentials=self._credentials)

    def _get_projects_client(self) -> compute_v1.ProjectsClient:
        return compute_v1.ProjectsClient(credentials=self._credentials)

    async def get_account_id(self) -> str:
        client = self._get_projects_client()
        try:
            project = await asyncio.to_thread(client.get, project=self.project_id)
        except GoogleAPIError as e:
            logger.error("gcp_identity_lookup_failed", project_id=self.project_id, error=str(e))
            raise IdentityLookupFailed(f"GCP project lookup failed: {e}", details={"project_id": self.project_id}) from e
        return project.name or self.project_id

    def _count_running(self) -> int:
        client = self._get_instances_client()
        request = compute_v1.AggregatedListInstancesRequest(project=self.project_id)
        running = 0
        # Pager iteration issues the page requests, so it stays inside the worker thread
        for _zone, scoped in client.aggregated_list(request=request):
            for instance in scoped.instances:
                if instance.status == "RUNNING":
                    running += 1
        return running

    async def count_running_instances(self) -> int:
        try:
            return await asyncio.to_thread(self._count_running)
        except GoogleAPIError as e:
            logger.error("gcp_instance_list_failed", project_id=self.project_id, error=str(e))
            raise ProviderQueryFailed(f"GCP instance listing failed: {e}", details={"project_id": self.project_id}) from e

    async def estimate_daily_cost(self, day: date) -> float:
        running = await self.count_running_instances()
        days_in_month = calendar.monthrange(day.year, day.month)[1]
        estimate = running * self.monthly_instance_cost / days_in_month
        logger.debug("gcp_daily_cost_estimated", project_id=self.project_id, running=running, estimate=estimate)
        return estimate

    async def query_total(self, date_range: DateRange, granularity: Granularity, filters: List[CostFilter]) -> float:
        raise ProviderQueryFailed("GCP cost queries require a billing export, which is not supported")

    async def query_grouped(
        self,
        date_range: DateRange,
        granularity: Granularity,
        group_by: str,
        filters: List[CostFilter],
    ) -> Dict[str, float]:
        raise ProviderQueryFailed("GCP cost queries require a billing export, which is not supported")

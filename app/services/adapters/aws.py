"""
AWS Cost Explorer Adapter

Identity via STS GetCallerIdentity (profile region); costs via Cost Explorer,
which is only served from us-east-1.
"""

from typing import Any, Dict, List, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import get_settings
from app.core.exceptions import IdentityLookupFailed, ProviderQueryFailed
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import DateRange, Granularity
from app.services.adapters.aws_utils import AWS_GLOBAL_BILLING_REGION, DEFAULT_BOTO_CONFIG, get_boto_session
from app.services.adapters.base import BaseCostAdapter, CostFilter, to_query_bounds

logger = structlog.get_logger()

COST_METRIC = "UnblendedCost"


def build_filter_expression(filters: List[CostFilter]) -> Optional[Dict[str, Any]]:
    """Cost Explorer Expression: a single clause alone, several clauses under ``And``."""
    clauses = []
    for f in filters:
        field = "Tags" if f.kind == "tag" else "Dimensions"
        clauses.append({field: {"Key": f.key, "Values": [f.value]}})
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"And": clauses}


def _error_code(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "Unknown")
    return type(e).__name__


class AWSCostAdapter(BaseCostAdapter):
    provider = CloudProvider.AWS
    default_group_by = "SERVICE"

    def __init__(self, credential: Credential, region: str):
        super().__init__(credential, region)
        self.session = get_boto_session(credential)

    async def get_account_id(self) -> str:
        try:
            async with self.session.client("sts", region_name=self.region, config=DEFAULT_BOTO_CONFIG) as sts:
                identity = await sts.get_caller_identity()
            return identity["Account"]
        except (ClientError, BotoCoreError) as e:
            logger.error("aws_identity_lookup_failed", profile=self.credential.profile_name, error=str(e))
            raise IdentityLookupFailed(
                f"AWS identity lookup failed: {e}",
                details={"profile": self.credential.profile_name, "aws_error": _error_code(e)},
            ) from e

    def _request_params(
        self,
        date_range: DateRange,
        granularity: Granularity,
        filters: List[CostFilter],
        group_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        start, end_exclusive = to_query_bounds(date_range)
        params: Dict[str, Any] = {
            "TimePeriod": {
                "Start": start.strftime("%Y-%m-%d"),
                "End": end_exclusive.strftime("%Y-%m-%d"),
            },
            "Granularity": granularity.value,
            "Metrics": [COST_METRIC],
        }
        if group_by:
            params["GroupBy"] = [{"Type": "DIMENSION", "Key": group_by}]
        expression = build_filter_expression(filters)
        if expression:
            params["Filter"] = expression
        return params

    async def _results_by_time(self, request_params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """All ResultsByTime buckets, following NextPageToken up to the configured page cap."""
        max_pages = get_settings().COST_QUERY_MAX_PAGES
        results: List[Dict[str, Any]] = []
        try:
            async with self.session.client(
                "ce", region_name=AWS_GLOBAL_BILLING_REGION, config=DEFAULT_BOTO_CONFIG
            ) as client:
                pages_fetched = 0
                while pages_fetched < max_pages:
                    response = await client.get_cost_and_usage(**request_params)
                    results.extend(response.get("ResultsByTime", []))

                    pages_fetched += 1
                    if "NextPageToken" in response:
                        request_params = {**request_params, "NextPageToken": response["NextPageToken"]}
                    else:
                        break
                else:
                    logger.warning("aws_cost_pagination_truncated", pages=pages_fetched)
        except (ClientError, BotoCoreError) as e:
            logger.error("aws_cost_query_failed", profile=self.credential.profile_name, error=str(e))
            raise ProviderQueryFailed(
                f"AWS Cost Explorer failure: {e}",
                details={"profile": self.credential.profile_name, "aws_error": _error_code(e)},
            ) from e
        return results

    async def query_total(self, date_range: DateRange, granularity: Granularity, filters: List[CostFilter]) -> float:
        results = await self._results_by_time(self._request_params(date_range, granularity, filters))
        total = 0.0
        for bucket in results:
            metric = bucket.get("Total", {}).get(COST_METRIC)
            if metric:
                total += float(metric["Amount"])
        return total

    async def query_grouped(
        self,
        date_range: DateRange,
        granularity: Granularity,
        group_by: str,
        filters: List[CostFilter],
    ) -> Dict[str, float]:
        results = await self._results_by_time(self._request_params(date_range, granularity, filters, group_by))
        grouped: Dict[str, float] = {}
        for bucket in results:
            for group in bucket.get("Groups", []):
                label = group["Keys"][0]
                amount = float(group["Metrics"][COST_METRIC]["Amount"])
                grouped[label] = grouped.get(label, 0.0) + amount
        return grouped

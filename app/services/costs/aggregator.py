"""
Per-Profile Cost Aggregator

Resolves a saved profile, opens the matching cost adapter and returns the
period total with its service and region breakdowns.
"""

import asyncio
from datetime import date
from typing import Dict, List, Optional, Tuple

import structlog

from app.core.amounts import round_currency
from app.core.exceptions import CostEngineError, ValidationError
from app.core.ops_metrics import COST_QUERY_FAILURES
from app.schemas.base import CloudProvider
from app.schemas.costs import CostQuery, CostQueryResult, DateRange
from app.services.adapters.base import parse_filters
from app.services.adapters.factory import AdapterFactory
from app.services.connections.resolver import CredentialResolver
from app.services.costs.date_range import compute_range, granularity_for

logger = structlog.get_logger()

# Grouped entries below this are provider rounding noise
NEGLIGIBLE_AMOUNT = 0.001


def rank_dimensions(grouped: Dict[str, float]) -> Dict[str, float]:
    """Highest cost first, negligible entries dropped, amounts rounded."""
    ranked = sorted(grouped.items(), key=lambda item: item[1], reverse=True)
    return {label: round_currency(amount) for label, amount in ranked if amount >= NEGLIGIBLE_AMOUNT}


class CostAggregator:
    """
    Fetches total and per-dimension cost for one profile.

    Never raises: credential, identity, validation and provider failures all
    collapse into a ``status='error'`` result carrying the underlying message.
    """

    def __init__(
        self,
        resolvers: Dict[CloudProvider, CredentialResolver],
        adapter_factory: type[AdapterFactory] = AdapterFactory,
    ):
        self.resolvers = resolvers
        self.adapter_factory = adapter_factory

    def _resolver(self, provider: CloudProvider) -> CredentialResolver:
        resolver = self.resolvers.get(provider)
        if resolver is None:
            raise ValidationError(f"No credential resolver configured for {provider.value}")
        return resolver

    async def get_cost(
        self,
        provider: CloudProvider,
        query: CostQuery,
        today: Optional[date] = None,
    ) -> CostQueryResult:
        provider = CloudProvider(provider)
        date_range: Optional[DateRange] = None
        log = logger.bind(provider=provider.value, profile=query.profile_name)

        try:
            date_range = compute_range(query.time_range_days, query.start_date_iso, query.end_date_iso, today=today)
            granularity = granularity_for(query.time_range_days, query.start_date_iso, query.end_date_iso)
            filters = parse_filters(query.tags, query.dimensions)

            resolver = self._resolver(provider)
            credential = await resolver.resolve(query.profile_name)
            region = await resolver.resolve_region(query.profile_name)

            adapter = self.adapter_factory.get_adapter(credential, region)
            try:
                account_id = await adapter.get_account_id()
                group_by = query.group_by or adapter.default_group_by
                total = await adapter.query_total(date_range, granularity, filters)
                grouped = await adapter.query_grouped(date_range, granularity, group_by, filters)
            finally:
                await adapter.close()

        except CostEngineError as e:
            COST_QUERY_FAILURES.labels(provider=provider.value).inc()
            log.warning("cost_query_failed", error=e.message, code=e.code)
            return self._error_result(provider, query, date_range, e.message)
        except Exception as e:
            COST_QUERY_FAILURES.labels(provider=provider.value).inc()
            log.error("cost_query_unexpected_error", error=str(e), error_type=type(e).__name__)
            return self._error_result(provider, query, date_range, str(e) or type(e).__name__)

        log.info("cost_query_complete", account_id=account_id, granularity=granularity.value, group_by=group_by)
        return CostQueryResult(
            profile_name=query.profile_name,
            provider=provider.value,
            account_id=account_id,
            period_start=date_range.start,
            period_end=date_range.end,
            total_cost=round_currency(total),
            cost_by_dimension=rank_dimensions(grouped),
            status="success",
        )

    @staticmethod
    def _error_result(
        provider: CloudProvider,
        query: CostQuery,
        date_range: Optional[DateRange],
        message: str,
    ) -> CostQueryResult:
        return CostQueryResult(
            profile_name=query.profile_name,
            provider=provider.value,
            period_start=date_range.start if date_range else None,
            period_end=date_range.end if date_range else None,
            status="error",
            message=message,
        )

    async def get_costs(
        self,
        provider: CloudProvider,
        profile_names: List[str],
        query: CostQuery,
        today: Optional[date] = None,
    ) -> Tuple[List[CostQueryResult], Dict[str, str]]:
        """
        Query several profiles concurrently.

        Returns successful results and a profile -> error message mapping.
        """
        results = await asyncio.gather(*(
            self.get_cost(provider, query.model_copy(update={"profile_name": name}), today=today)
            for name in profile_names
        ))
        succeeded = [r for r in results if r.status == "success"]
        errors = {r.profile_name: r.message for r in results if r.status == "error"}
        return succeeded, errors

"""
Multi-Provider Daily-Cost Fetcher

One calendar day of spend across the connected providers. Each provider
branch is independent: a failure or timeout in one yields 0 for that provider
and never fails the day.
"""

import asyncio
from datetime import date, timedelta
from typing import Collection, Dict, List, Optional

import structlog

from app.core.amounts import round_currency
from app.core.config import Settings, get_settings
from app.core.exceptions import ProviderQueryFailed
from app.core.ops_metrics import PROVIDER_DEGRADATIONS
from app.core.result import Err, Result, capture, unwrap_or
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.schemas.costs import CostQuery, DailyProviderCost, GCPCredentials, ProviderCosts
from app.services.adapters.gcp import GCPComputeAdapter
from app.services.costs.aggregator import CostAggregator

logger = structlog.get_logger()


def gcp_credential_from_request(gcp_credentials: Optional[GCPCredentials]) -> Optional[Credential]:
    if gcp_credentials is None or not gcp_credentials.project_id:
        return None
    return Credential(
        profile_name=gcp_credentials.project_id,
        provider=CloudProvider.GCP,
        values={
            "project_id": gcp_credentials.project_id,
            "service_account_json": gcp_credentials.service_account_json,
        },
        source="request",
    )


class DailyCostFetcher:
    def __init__(
        self,
        aggregator: CostAggregator,
        settings: Optional[Settings] = None,
        gcp_adapter_cls: type[GCPComputeAdapter] = GCPComputeAdapter,
    ):
        self.aggregator = aggregator
        self.settings = settings or get_settings()
        self.gcp_adapter_cls = gcp_adapter_cls

    def _profiles_for(self, provider: CloudProvider) -> List[str]:
        if provider == CloudProvider.AWS:
            return self.settings.AWS_PROFILES
        return self.settings.AZURE_PROFILES

    async def _profile_sum(self, provider: CloudProvider, day: date) -> float:
        """Sum of the day's total across the configured profiles of one provider."""
        iso_day = day.isoformat()
        results = await asyncio.gather(*(
            self.aggregator.get_cost(
                provider,
                CostQuery(profile_name=name, start_date_iso=iso_day, end_date_iso=iso_day),
            )
            for name in self._profiles_for(provider)
        ))
        failed = {r.profile_name: r.message for r in results if r.status == "error"}
        if results and len(failed) == len(results):
            raise ProviderQueryFailed("; ".join(f"{name}: {msg}" for name, msg in failed.items()))
        if failed:
            logger.warning("provider_profiles_partially_failed", provider=provider.value, day=iso_day, failed=failed)
        return sum(r.total_cost for r in results if r.status == "success")

    async def _gcp_estimate(self, credential: Credential, day: date) -> float:
        adapter = self.gcp_adapter_cls(credential, self.settings.GCP_DEFAULT_REGION)
        return await adapter.estimate_daily_cost(day)

    async def fetch_day(
        self,
        day: date,
        connected_providers: Collection[str],
        gcp_credentials: Optional[GCPCredentials] = None,
    ) -> ProviderCosts:
        """
        ``gcp`` is an estimate derived from the running instance count, not billed cost.
        """
        connected = {CloudProvider(p) for p in connected_providers}
        branches = {}
        if CloudProvider.AWS in connected:
            branches[CloudProvider.AWS] = self._profile_sum(CloudProvider.AWS, day)
        if CloudProvider.AZURE in connected:
            branches[CloudProvider.AZURE] = self._profile_sum(CloudProvider.AZURE, day)
        if CloudProvider.GCP in connected:
            gcp_credential = gcp_credential_from_request(gcp_credentials)
            if gcp_credential is not None:
                branches[CloudProvider.GCP] = self._gcp_estimate(gcp_credential, day)
            else:
                logger.debug("gcp_skipped_no_project_id", day=day.isoformat())

        timeout = self.settings.PROVIDER_TIMEOUT_SECONDS
        outcomes = await asyncio.gather(*(
            capture(coro, timeout, scope=f"{provider.value}:{day.isoformat()}", level="provider")
            for provider, coro in branches.items()
        ))

        amounts: Dict[str, float] = {}
        for provider, outcome in zip(branches, outcomes):
            if isinstance(outcome, Err):
                PROVIDER_DEGRADATIONS.labels(provider=provider.value).inc()
                logger.warning(
                    "provider_daily_cost_degraded",
                    provider=provider.value,
                    day=day.isoformat(),
                    error=outcome.message,
                )
            amounts[provider.value] = round_currency(unwrap_or(outcome, 0.0))

        return ProviderCosts(**amounts)

    async def fetch_series(
        self,
        days: int,
        connected_providers: Collection[str],
        gcp_credentials: Optional[GCPCredentials] = None,
        today: Optional[date] = None,
    ) -> List[DailyProviderCost]:
        """
        The trailing ``days`` calendar days ending today, oldest first.

        At most ``FORECAST_FETCH_CONCURRENCY`` days are in flight at once; a
        day whose fetch fails is recorded as all-zero so the series stays
        dense and index-aligned.
        """
        today = today or date.today()
        calendar_days = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

        day_timeout = self.settings.PROVIDER_TIMEOUT_SECONDS * 2
        semaphore = asyncio.Semaphore(self.settings.FORECAST_FETCH_CONCURRENCY)

        async def bounded_fetch(day: date) -> Result:
            # The day timeout starts once a slot is held, not while queued
            async with semaphore:
                return await capture(
                    self.fetch_day(day, connected_providers, gcp_credentials),
                    day_timeout,
                    scope=day.isoformat(),
                    level="day",
                )

        outcomes = await asyncio.gather(*(bounded_fetch(day) for day in calendar_days))

        series = []
        for day, outcome in zip(calendar_days, outcomes):
            costs = unwrap_or(outcome, ProviderCosts())
            if isinstance(outcome, Err):
                logger.warning("daily_cost_fetch_failed", day=day.isoformat(), error=outcome.message)
            series.append(DailyProviderCost(
                date=day,
                aws=costs.aws,
                azure=costs.azure,
                gcp=costs.gcp,
                total=round_currency(costs.total),
            ))
        return series

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from app.core.config import Settings, get_settings
from app.core.exceptions import PartialFailure
from app.core.ops_metrics import AUDIT_LATENCY, REGION_SCAN_FAILURES
from app.core.result import Ok, capture
from app.schemas.audit import (
    AuditErrors,
    AuditInventory,
    AuditReport,
    BudgetStatus,
)
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegionScan:
    """Findings of one category in one region, plus how many resources were looked at."""
    items: List[Any] = field(default_factory=list)
    scanned: int = 0


@dataclass(frozen=True)
class CategoryOutcome:
    items: List[Any] = field(default_factory=list)
    scanned: int = 0
    error: Optional[str] = None


class BaseResourceAuditor(ABC):
    """
    Abstract Base Class for multi-cloud waste audits.

    Responsibilities:
    - Run the four scans (stopped instances, unattached volumes, unassociated
      IPs, budgets) concurrently and wait for all of them.
    - Fan region-scoped scans out per region, capturing each region's outcome.
    - Turn failed regions into one human-readable error per category.
    - Share account-wide listings between the regions of one audit.

    Subclasses only implement the provider calls and normalize responses into
    the audit schemas.
    """

    provider: CloudProvider

    def __init__(self, credential: Credential, settings: Optional[Settings] = None):
        self.credential = credential
        self.settings = settings or get_settings()
        self._listings: Dict[str, asyncio.Future] = {}

    @abstractmethod
    async def list_stopped_instances(self, region: str) -> RegionScan:
        """Compute instances in a stopped state in one region; ``scanned`` counts every instance."""

    @abstractmethod
    async def list_unattached_volumes(self, region: str) -> RegionScan:
        """Block volumes not attached to any instance in one region; ``scanned`` counts every volume."""

    @abstractmethod
    async def list_unassociated_ips(self, region: str) -> RegionScan:
        """Allocated floating IPs without an association in one region."""

    @abstractmethod
    async def list_budgets(self, account_id: str) -> List[BudgetStatus]:
        """Account-wide budgets, already classified."""

    async def close(self) -> None:
        """Release SDK clients."""

    async def _shared_listing(self, key: str, load: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run ``load`` once per audit and hand its result to every caller.

        The listing is shielded so a region whose scan times out does not
        cancel it for the regions still waiting on it.
        """
        listing = self._listings.get(key)
        if listing is None:
            listing = asyncio.ensure_future(load())
            self._listings[key] = listing
        return await asyncio.shield(listing)

    async def audit(self, profile_name: str, account_id: str, regions: List[str]) -> AuditReport:
        regions = list(dict.fromkeys(regions))
        started = time.perf_counter()
        self._listings = {}

        try:
            instances, volumes, ips, budgets = await asyncio.gather(
                self._scan_regions("instances", self.list_stopped_instances, regions),
                self._scan_regions("volumes", self.list_unattached_volumes, regions),
                self._scan_regions("ips", self.list_unassociated_ips, regions),
                self._scan_budgets(account_id),
            )
        finally:
            for listing in self._listings.values():
                listing.cancel()
            self._listings = {}

        AUDIT_LATENCY.labels(provider=self.provider.value).observe(time.perf_counter() - started)
        logger.info(
            "resource_audit_complete",
            provider=self.provider.value,
            profile=profile_name,
            regions=regions,
            stopped_instances=len(instances.items),
            unattached_volumes=len(volumes.items),
            unassociated_ips=len(ips.items),
            budgets=len(budgets.items),
        )

        return AuditReport(
            provider=self.provider.value,
            profile_name=profile_name,
            account_id=account_id,
            regions=regions,
            scanned_at=datetime.now(timezone.utc),
            stopped_instances=instances.items,
            unattached_volumes=volumes.items,
            unassociated_ips=ips.items,
            budgets=budgets.items,
            inventory=AuditInventory(
                instances=instances.scanned,
                volumes=volumes.scanned,
                ips=ips.scanned,
            ),
            errors=AuditErrors(
                instances=instances.error,
                volumes=volumes.error,
                ips=ips.error,
                budgets=budgets.error,
            ),
        )

    async def _scan_regions(
        self,
        category: str,
        scan: Callable[[str], Awaitable[RegionScan]],
        regions: List[str],
    ) -> CategoryOutcome:
        timeout = self.settings.REGION_SCAN_TIMEOUT_SECONDS
        outcomes = await asyncio.gather(*(
            capture(scan(region), timeout, scope=f"{self.provider.value}:{category}:{region}", level="region")
            for region in regions
        ))

        items: List[Any] = []
        scanned = 0
        failures = {}
        for region, outcome in zip(regions, outcomes):
            if isinstance(outcome, Ok):
                items.extend(outcome.value.items)
                scanned += outcome.value.scanned
            else:
                failures[region] = outcome.message
                REGION_SCAN_FAILURES.labels(provider=self.provider.value, category=category).inc()
                logger.warning(
                    "audit_region_scan_failed",
                    provider=self.provider.value,
                    category=category,
                    region=region,
                    error=outcome.message,
                )

        error = PartialFailure(category, failures).message if failures else None
        return CategoryOutcome(items=items, scanned=scanned, error=error)

    async def _scan_budgets(self, account_id: str) -> CategoryOutcome:
        outcome = await capture(
            self.list_budgets(account_id),
            self.settings.REGION_SCAN_TIMEOUT_SECONDS,
            scope=f"{self.provider.value}:budgets",
            level="budget",
        )
        if isinstance(outcome, Ok):
            return CategoryOutcome(items=outcome.value, scanned=len(outcome.value))
        logger.warning("audit_budget_scan_failed", provider=self.provider.value, error=outcome.message)
        return CategoryOutcome(items=[], error=outcome.message)

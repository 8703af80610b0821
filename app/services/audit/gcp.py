import asyncio
from collections import defaultdict
from typing import Dict, List

import structlog
from google.cloud import compute_v1

from app.schemas.audit import BudgetStatus, StoppedInstance, UnassociatedFloatingIP, UnattachedVolume
from app.schemas.base import CloudProvider
from app.services.audit.base import BaseResourceAuditor, RegionScan
from app.services.connections.gcp import build_gcp_credentials, project_id_of

logger = structlog.get_logger()

STOPPED_STATUSES = {"TERMINATED", "STOPPED", "SUSPENDED"}


def _scope_region(scope: str) -> str:
    """'zones/us-central1-a' -> 'us-central1', 'regions/us-central1' -> 'us-central1'."""
    kind, _, name = scope.partition("/")
    if kind == "zones":
        return name.rsplit("-", 1)[0]
    if kind == "regions":
        return name
    return ""


def _last_segment(url: str) -> str:
    return url.rsplit("/", 1)[-1] if url else url


class GCPResourceAuditor(BaseResourceAuditor):
    """
    Compute Engine audit. The compute_v1 clients are synchronous, so each
    listing runs in a worker thread (pager iteration included). Aggregated
    listings span the whole project and are fetched once per audit.
    """

    provider = CloudProvider.GCP

    def __init__(self, credential, settings=None):
        super().__init__(credential, settings)
        self.project_id = project_id_of(credential)
        self._credentials = build_gcp_credentials(credential.values.get("service_account_json"))

    def _instances_by_region(self) -> Dict[str, list]:
        client = compute_v1.InstancesClient(credentials=self._credentials)
        request = compute_v1.AggregatedListInstancesRequest(project=self.project_id)
        grouped: Dict[str, list] = defaultdict(list)
        for scope, scoped in client.aggregated_list(request=request):
            grouped[_scope_region(scope)].extend(scoped.instances)
        return grouped

    def _disks_by_region(self) -> Dict[str, list]:
        client = compute_v1.DisksClient(credentials=self._credentials)
        request = compute_v1.AggregatedListDisksRequest(project=self.project_id)
        grouped: Dict[str, list] = defaultdict(list)
        for scope, scoped in client.aggregated_list(request=request):
            grouped[_scope_region(scope)].extend(scoped.disks)
        return grouped

    def _addresses(self, region: str) -> list:
        client = compute_v1.AddressesClient(credentials=self._credentials)
        return list(client.list(project=self.project_id, region=region))

    async def list_stopped_instances(self, region: str) -> RegionScan:
        by_region = await self._shared_listing("instances", lambda: asyncio.to_thread(self._instances_by_region))
        instances = by_region.get(region, [])
        found = [
            StoppedInstance(
                id=str(instance.id),
                instance_type=_last_segment(instance.machine_type),
                state=instance.status,
                launch_time=instance.last_start_timestamp or instance.creation_timestamp or None,
                region=region,
            )
            for instance in instances
            if instance.status in STOPPED_STATUSES
        ]
        return RegionScan(items=found, scanned=len(instances))

    async def list_unattached_volumes(self, region: str) -> RegionScan:
        by_region = await self._shared_listing("disks", lambda: asyncio.to_thread(self._disks_by_region))
        disks = by_region.get(region, [])
        found = [
            UnattachedVolume(
                id=str(disk.id),
                size_gib=disk.size_gb,
                volume_type=_last_segment(disk.type_),
                state=disk.status,
                region=region,
                create_time=disk.creation_timestamp or None,
            )
            for disk in disks
            if not disk.users
        ]
        return RegionScan(items=found, scanned=len(disks))

    async def list_unassociated_ips(self, region: str) -> RegionScan:
        # Addresses are listed per region, nothing to share
        addresses = await asyncio.to_thread(self._addresses, region)
        found = [
            UnassociatedFloatingIP(public_ip=address.address, allocation_id=str(address.id), region=region)
            for address in addresses
            if address.status == "RESERVED"
        ]
        return RegionScan(items=found, scanned=len(addresses))

    async def list_budgets(self, account_id: str) -> List[BudgetStatus]:
        # Cloud Billing budgets carry thresholds but no spend figures to classify
        logger.info("gcp_budget_scan_unsupported", project_id=self.project_id)
        return []

from typing import List

import structlog
from azure.mgmt.compute.aio import ComputeManagementClient
from azure.mgmt.consumption.aio import ConsumptionManagementClient
from azure.mgmt.network.aio import NetworkManagementClient

from app.schemas.audit import BudgetStatus, StoppedInstance, UnassociatedFloatingIP, UnattachedVolume
from app.schemas.base import CloudProvider
from app.services.audit.base import BaseResourceAuditor, RegionScan
from app.services.audit.budgets import classify_budget
from app.services.connections.azure import build_azure_credential, subscription_id_of

logger = structlog.get_logger()

STOPPED_POWER_STATES = {"PowerState/stopped", "PowerState/deallocated"}


def _normalize_location(value: str) -> str:
    # "East US" and "eastus" name the same region
    return (value or "").replace(" ", "").lower()


def _same_region(location: str, region: str) -> bool:
    return _normalize_location(location) == _normalize_location(region)


def _power_state(vm) -> str:
    statuses = getattr(getattr(vm, "instance_view", None), "statuses", None) or []
    for status in statuses:
        if status.code and status.code.startswith("PowerState/"):
            return status.code
    return ""


class AzureResourceAuditor(BaseResourceAuditor):
    """
    Azure Management SDK audit. Azure listings are subscription-wide: each is
    fetched once per audit and every region scan keeps the resources whose
    location matches its region.
    """

    provider = CloudProvider.AZURE

    def __init__(self, credential, settings=None):
        super().__init__(credential, settings)
        self.subscription_id = subscription_id_of(credential)
        self._credential = build_azure_credential(credential)
        self._compute_client = ComputeManagementClient(self._credential, self.subscription_id)
        self._network_client = NetworkManagementClient(self._credential, self.subscription_id)
        self._consumption_client = ConsumptionManagementClient(self._credential, self.subscription_id)

    async def _all_vms(self) -> list:
        return [vm async for vm in self._compute_client.virtual_machines.list_all(status_only="true")]

    async def _all_disks(self) -> list:
        return [disk async for disk in self._compute_client.disks.list()]

    async def _all_public_ips(self) -> list:
        return [ip async for ip in self._network_client.public_ip_addresses.list_all()]

    async def list_stopped_instances(self, region: str) -> RegionScan:
        vms = [vm for vm in await self._shared_listing("vms", self._all_vms) if _same_region(vm.location, region)]
        found = []
        for vm in vms:
            state = _power_state(vm)
            if state in STOPPED_POWER_STATES:
                hardware = getattr(vm, "hardware_profile", None)
                found.append(StoppedInstance(
                    id=vm.id,
                    instance_type=getattr(hardware, "vm_size", None),
                    state=state.split("/", 1)[1],
                    launch_time=getattr(vm, "time_created", None),
                    region=region,
                ))
        return RegionScan(items=found, scanned=len(vms))

    async def list_unattached_volumes(self, region: str) -> RegionScan:
        disks = [d for d in await self._shared_listing("disks", self._all_disks) if _same_region(d.location, region)]
        found = [
            UnattachedVolume(
                id=disk.id,
                size_gib=disk.disk_size_gb,
                volume_type=disk.sku.name if disk.sku else None,
                state=str(disk.disk_state),
                region=region,
                create_time=disk.time_created,
            )
            for disk in disks
            if disk.disk_state == "Unattached"
        ]
        return RegionScan(items=found, scanned=len(disks))

    async def list_unassociated_ips(self, region: str) -> RegionScan:
        listing = await self._shared_listing("public_ips", self._all_public_ips)
        ips = [ip for ip in listing if _same_region(ip.location, region)]
        found = [
            UnassociatedFloatingIP(public_ip=ip.ip_address, allocation_id=ip.id, region=region)
            for ip in ips
            if ip.ip_configuration is None and getattr(ip, "nat_gateway", None) is None
        ]
        return RegionScan(items=found, scanned=len(ips))

    async def list_budgets(self, account_id: str) -> List[BudgetStatus]:
        budgets = []
        scope = f"/subscriptions/{self.subscription_id}"
        async for budget in self._consumption_client.budgets.list(scope=scope):
            actual = budget.current_spend.amount if budget.current_spend else 0
            forecasted = budget.forecast_spend.amount if getattr(budget, "forecast_spend", None) else 0
            budgets.append(classify_budget(
                name=budget.name,
                limit=float(budget.amount or 0),
                actual_spend=float(actual or 0),
                forecasted_spend=float(forecasted or 0),
            ))
        return budgets

    async def close(self) -> None:
        for client in (self._compute_client, self._network_client, self._consumption_client, self._credential):
            await client.close()

from typing import List

import structlog

from app.schemas.audit import BudgetStatus, StoppedInstance, UnassociatedFloatingIP, UnattachedVolume
from app.schemas.base import CloudProvider
from app.services.adapters.aws_utils import AWS_GLOBAL_BILLING_REGION, DEFAULT_BOTO_CONFIG, get_boto_session
from app.services.audit.base import BaseResourceAuditor, RegionScan
from app.services.audit.budgets import classify_budget

logger = structlog.get_logger()

# Listed by describe_instances for a while after termination, but no longer inventory
GONE_INSTANCE_STATES = {"shutting-down", "terminated"}


def _amount(spend: dict, key: str) -> float:
    return float((spend or {}).get(key, {}).get("Amount", 0) or 0)


class AWSResourceAuditor(BaseResourceAuditor):
    """EC2 waste scans per region, Budgets once per account from us-east-1."""

    provider = CloudProvider.AWS

    def __init__(self, credential, settings=None):
        super().__init__(credential, settings)
        self.session = get_boto_session(credential)

    def _ec2(self, region: str):
        return self.session.client("ec2", region_name=region, config=DEFAULT_BOTO_CONFIG)

    async def list_stopped_instances(self, region: str) -> RegionScan:
        found = []
        scanned = 0
        async with self._ec2(region) as ec2:
            paginator = ec2.get_paginator("describe_instances")
            async for page in paginator.paginate():
                for reservation in page.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        state = instance.get("State", {}).get("Name")
                        if state in GONE_INSTANCE_STATES:
                            continue
                        scanned += 1
                        if state != "stopped":
                            continue
                        found.append(StoppedInstance(
                            id=instance["InstanceId"],
                            instance_type=instance.get("InstanceType"),
                            state=state,
                            launch_time=instance.get("LaunchTime"),
                            region=region,
                        ))
        return RegionScan(items=found, scanned=scanned)

    async def list_unattached_volumes(self, region: str) -> RegionScan:
        found = []
        scanned = 0
        async with self._ec2(region) as ec2:
            paginator = ec2.get_paginator("describe_volumes")
            async for page in paginator.paginate():
                for volume in page.get("Volumes", []):
                    scanned += 1
                    if volume.get("State") != "available":
                        continue
                    found.append(UnattachedVolume(
                        id=volume["VolumeId"],
                        size_gib=volume.get("Size"),
                        volume_type=volume.get("VolumeType"),
                        state="available",
                        region=region,
                        create_time=volume.get("CreateTime"),
                    ))
        return RegionScan(items=found, scanned=scanned)

    async def list_unassociated_ips(self, region: str) -> RegionScan:
        async with self._ec2(region) as ec2:
            response = await ec2.describe_addresses()
        addresses = response.get("Addresses", [])
        return RegionScan(
            items=[
                UnassociatedFloatingIP(
                    public_ip=address.get("PublicIp"),
                    allocation_id=address.get("AllocationId"),
                    region=region,
                )
                for address in addresses
                if not address.get("AssociationId")
            ],
            scanned=len(addresses),
        )

    async def list_budgets(self, account_id: str) -> List[BudgetStatus]:
        budgets = []
        async with self.session.client(
            "budgets", region_name=AWS_GLOBAL_BILLING_REGION, config=DEFAULT_BOTO_CONFIG
        ) as client:
            paginator = client.get_paginator("describe_budgets")
            async for page in paginator.paginate(AccountId=account_id):
                for budget in page.get("Budgets", []):
                    spend = budget.get("CalculatedSpend", {})
                    budgets.append(classify_budget(
                        name=budget["BudgetName"],
                        limit=float(budget.get("BudgetLimit", {}).get("Amount", 0) or 0),
                        actual_spend=_amount(spend, "ActualSpend"),
                        forecasted_spend=_amount(spend, "ForecastedSpend"),
                    ))
        return budgets

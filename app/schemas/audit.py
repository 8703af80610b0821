"""
Resource Audit Schemas

Findings are normalized from each provider SDK's response shape before they
leave the auditor.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import Field

from app.schemas.base import CamelModel


class StoppedInstance(CamelModel):
    id: str
    instance_type: Optional[str] = None
    state: str
    launch_time: Optional[datetime] = None
    region: str


class UnattachedVolume(CamelModel):
    id: str
    size_gib: Optional[int] = Field(None, alias="sizeGiB")
    volume_type: Optional[str] = None
    state: str
    region: str
    create_time: Optional[datetime] = None


class UnassociatedFloatingIP(CamelModel):
    public_ip: Optional[str] = None
    allocation_id: Optional[str] = None
    region: str


class BudgetState(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    EXCEEDED = "EXCEEDED"


class BudgetStatus(CamelModel):
    name: str
    limit: float
    actual_spend: float
    forecasted_spend: float
    percent_used: float
    status: BudgetState


class AuditErrors(CamelModel):
    instances: Optional[str] = None
    volumes: Optional[str] = None
    ips: Optional[str] = None
    budgets: Optional[str] = None


class AuditInventory(CamelModel):
    """Resources looked at in the regions that scanned successfully, waste included."""
    instances: int = 0
    volumes: int = 0
    ips: int = 0


class AuditReport(CamelModel):
    provider: str
    profile_name: str
    account_id: str
    regions: List[str]
    scanned_at: datetime
    stopped_instances: List[StoppedInstance] = Field(default_factory=list)
    unattached_volumes: List[UnattachedVolume] = Field(default_factory=list)
    unassociated_ips: List[UnassociatedFloatingIP] = Field(default_factory=list, alias="unassociatedIPs")
    budgets: List[BudgetStatus] = Field(default_factory=list)
    inventory: AuditInventory = Field(default_factory=AuditInventory)
    errors: AuditErrors = Field(default_factory=AuditErrors)


class ConnectionCheck(CamelModel):
    valid: bool
    account_id: Optional[str] = None
    error: Optional[str] = None


class ProviderEfficiency(CamelModel):
    score: int = 0
    unused_instances: int = 0
    total_instances: int = 0
    unused_volumes: int = 0
    total_volumes: int = 0
    profiles_audited: int = 0
    error: Optional[str] = None


class EfficiencyMetrics(CamelModel):
    """Share of scanned instances and volumes that are in use, per provider and overall (0-100)."""
    overall_score: int
    resource_utilization: int
    waste_ratio: int
    total_resources: int
    unused_resources: int
    breakdown: Dict[str, ProviderEfficiency] = Field(default_factory=dict)

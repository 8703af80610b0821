from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.dependencies import get_audit_service
from app.core.exceptions import ValidationError
from app.schemas.base import CamelModel, CloudProvider
from app.services.audit.service import AuditService

router = APIRouter(prefix="/efficiency", tags=["Resource Audit"])


class EfficiencyRequest(CamelModel):
    connected_providers: List[CloudProvider] = Field(default_factory=lambda: list(CloudProvider))
    regions: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Regions per provider; a provider left out scans each profile's own region",
    )


@router.post("")
async def get_efficiency(
    body: EfficiencyRequest,
    service: AuditService = Depends(get_audit_service),
):
    """
    Utilization score across providers: the share of scanned instances and
    volumes that are not stopped or unattached.

    Every profile of each connected provider is audited. Failed profiles are
    listed in ``errors`` by provider; a provider with no successful profile
    scores 0 and is left out of ``overallScore``.
    """
    if not body.connected_providers:
        raise ValidationError("At least one connected provider is required")

    metrics, errors = await service.efficiency(body.connected_providers, body.regions)
    return {
        "success": True,
        "metrics": metrics.model_dump(by_alias=True, mode="json"),
        "errors": errors,
    }

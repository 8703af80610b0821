from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.dependencies import get_audit_service
from app.core.exceptions import ValidationError
from app.schemas.base import CamelModel, CloudProvider
from app.services.audit.service import AuditService

router = APIRouter(prefix="/audit", tags=["Resource Audit"])
logger = structlog.get_logger()


class AuditRequest(CamelModel):
    profile_name: Optional[str] = None
    all_profiles: bool = False
    regions: List[str] = Field(default_factory=list, description="Defaults to each profile's region")


@router.post("/{provider}")
async def run_audit(
    provider: CloudProvider,
    body: AuditRequest,
    service: AuditService = Depends(get_audit_service),
):
    """
    Scan one account for stopped instances, unattached volumes, unassociated
    IPs and budget consumption.

    Categories fail independently; see ``errors`` in the report. Only an
    unknown profile or a failed identity lookup fails the whole request.

    With ``allProfiles`` every known profile is audited and the response is
    ``{"reports": [...], "errorsForProfiles": {...}}``; a profile that fails
    outright is reported there and never fails the request.
    """
    if body.all_profiles:
        profiles = await service.list_profiles(provider)
        if not profiles:
            raise ValidationError(f"No {provider.value} profiles configured")
        reports, errors = await service.run_many(provider, profiles, body.regions)
        logger.info("audit_request_complete", provider=provider.value, profiles=len(profiles), failed=len(errors))
        return {
            "reports": [r.model_dump(by_alias=True, mode="json") for r in reports],
            "errorsForProfiles": errors,
        }

    if not body.profile_name:
        raise ValidationError("profileName is required (or set allProfiles)")
    report = await service.run(provider, body.profile_name, body.regions)
    return report.model_dump(by_alias=True, mode="json")

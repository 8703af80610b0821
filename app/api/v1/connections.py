from fastapi import APIRouter, Depends

from app.core.dependencies import get_audit_service
from app.schemas.base import CamelModel, CloudProvider
from app.services.audit.service import AuditService

router = APIRouter(prefix="/connections", tags=["Connections"])


class VerifyRequest(CamelModel):
    profile_name: str


@router.post("/{provider}/verify")
async def verify_connection(
    provider: CloudProvider,
    body: VerifyRequest,
    service: AuditService = Depends(get_audit_service),
):
    """Resolve a profile and run its identity call."""
    check = await service.verify(provider, body.profile_name)
    return check.model_dump(by_alias=True, mode="json")


@router.get("/{provider}/profiles")
async def list_profiles(
    provider: CloudProvider,
    service: AuditService = Depends(get_audit_service),
):
    """Saved profile names followed by ambient ones."""
    return {"provider": provider.value, "profiles": await service.list_profiles(provider)}

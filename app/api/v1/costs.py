from typing import Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import Field

from app.core.dependencies import get_cost_aggregator
from app.core.exceptions import ValidationError
from app.schemas.base import CamelModel, CloudProvider
from app.schemas.costs import CostQuery
from app.services.costs.aggregator import CostAggregator

router = APIRouter(prefix="/costs", tags=["Costs"])
logger = structlog.get_logger()


# --- Schemas ---
class CostRequest(CamelModel):
    profiles: List[str] = Field(default_factory=list)
    all_profiles: bool = False
    time_range_days: Optional[int] = None
    start_date_iso: Optional[str] = None
    end_date_iso: Optional[str] = None
    group_by: Optional[str] = Field(None, description="Dimension to group by, e.g. SERVICE or REGION")
    tags: List[str] = Field(default_factory=list)
    dimensions: List[str] = Field(default_factory=list)


# --- Endpoints ---

@router.post("/{provider}")
async def get_costs(
    provider: CloudProvider,
    body: CostRequest,
    aggregator: CostAggregator = Depends(get_cost_aggregator),
):
    """
    Total and grouped cost for one or more profiles.

    Per-profile failures are reported in ``errorsForProfiles`` and never fail the request.
    """
    profiles: List[str] = list(body.profiles)
    if body.all_profiles:
        resolver = aggregator.resolvers[provider]
        profiles = await resolver.list_profiles()
    if not profiles:
        raise ValidationError("At least one profile is required (or set allProfiles)")

    query = CostQuery(
        profile_name=profiles[0],
        time_range_days=body.time_range_days,
        start_date_iso=body.start_date_iso,
        end_date_iso=body.end_date_iso,
        group_by=body.group_by,
        tags=body.tags,
        dimensions=body.dimensions,
    )
    results, errors = await aggregator.get_costs(provider, profiles, query)

    logger.info("cost_request_complete", provider=provider.value, profiles=len(profiles), failed=len(errors))
    accounts: List[Dict] = [r.model_dump(by_alias=True, mode="json") for r in results]
    return {"accountsCostData": accounts, "errorsForProfiles": errors}

from typing import Any, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field

from app.schemas.base import CloudProvider


class Profile(BaseModel):
    """A saved, named credential/region binding. Created outside the engine and never mutated by it."""
    name: str
    provider: CloudProvider
    region: str | None = Field(default=None, description="Default region for this account")
    credentials: Dict[str, Any] = Field(default_factory=dict, description="Opaque provider credential handle")

    model_config = ConfigDict(frozen=True)


class Credential(BaseModel):
    """Resolved credential handed to adapters and auditors."""
    profile_name: str
    provider: CloudProvider
    region: str | None = None
    values: Dict[str, Any] = Field(default_factory=dict, repr=False)
    source: Literal["saved", "ambient", "request"]

    model_config = ConfigDict(frozen=True)

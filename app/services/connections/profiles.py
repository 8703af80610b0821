"""
Saved Profile Stores

Profiles are persisted outside the engine. The engine only reads them through
a store handle passed to the CredentialResolver at construction time.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Protocol

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError
from app.schemas.base import CloudProvider
from app.schemas.connections import Profile

logger = structlog.get_logger()

_PROFILE_LIST = TypeAdapter(List[Profile])


class ProfileStore(Protocol):
    def get(self, provider: CloudProvider, name: str) -> Optional[Profile]: ...

    def names(self, provider: CloudProvider) -> List[str]: ...


class InMemoryProfileStore:
    """Read-only profile lookup keyed by (provider, name)."""

    def __init__(self, profiles: Iterable[Profile] = ()):
        self._profiles = {(p.provider, p.name): p for p in profiles}

    def get(self, provider: CloudProvider, name: str) -> Optional[Profile]:
        return self._profiles.get((CloudProvider(provider), name))

    def names(self, provider: CloudProvider) -> List[str]:
        provider = CloudProvider(provider)
        return [name for (p, name) in self._profiles if p == provider]


class JsonFileProfileStore(InMemoryProfileStore):
    """
    Loads a JSON array of profiles once at construction.

    Example document::

        [{"name": "prod", "provider": "aws", "region": "eu-west-1",
          "credentials": {"aws_access_key_id": "...", "aws_secret_access_key": "..."}}]
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[Profile]:
        if not self.path.exists():
            logger.warning("saved_profiles_file_missing", path=str(self.path))
            return []
        try:
            profiles = _PROFILE_LIST.validate_json(self.path.read_bytes())
        except PydanticValidationError as e:
            raise ValidationError(
                f"Saved profiles file {self.path} is invalid",
                details={"errors": e.errors(include_input=False)},
            ) from e
        logger.info("saved_profiles_loaded", path=str(self.path), count=len(profiles))
        return profiles

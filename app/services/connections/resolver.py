"""
Credential Resolver

Resolves a named profile to a provider credential and region using two tiers:
1. the saved profile store,
2. the provider's ambient source (local CLI config / environment), keyed by the same name.
"""

from typing import Dict, List, Optional, Protocol

import structlog

from app.core.config import Settings
from app.core.exceptions import CredentialNotFound
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.services.connections.aws import AWSSharedConfigSource
from app.services.connections.azure import AzureEnvironmentSource
from app.services.connections.gcp import GCPEnvironmentSource
from app.services.connections.profiles import ProfileStore

logger = structlog.get_logger()


class AmbientCredentialSource(Protocol):
    provider: CloudProvider

    async def lookup(self, profile_name: str) -> Optional[Credential]: ...

    async def names(self) -> List[str]: ...


class CredentialResolver:
    def __init__(
        self,
        provider: CloudProvider,
        store: ProfileStore,
        ambient: AmbientCredentialSource,
        default_region: str,
    ):
        self.provider = CloudProvider(provider)
        self.store = store
        self.ambient = ambient
        self.default_region = default_region

    async def _lookup(self, profile_name: str) -> Optional[Credential]:
        profile = self.store.get(self.provider, profile_name)
        if profile is not None:
            return Credential(
                profile_name=profile.name,
                provider=profile.provider,
                region=profile.region,
                values=profile.credentials,
                source="saved",
            )
        return await self.ambient.lookup(profile_name)

    async def resolve(self, profile_name: str) -> Credential:
        credential = await self._lookup(profile_name)
        if credential is None:
            logger.warning("credential_not_found", provider=self.provider.value, profile=profile_name)
            raise CredentialNotFound(profile_name, self.provider.value)
        return credential

    async def resolve_region(self, profile_name: str) -> str:
        credential = await self._lookup(profile_name)
        if credential is not None and credential.region:
            return credential.region
        return self.default_region

    async def list_profiles(self) -> List[str]:
        names = list(self.store.names(self.provider))
        for name in await self.ambient.names():
            if name not in names:
                names.append(name)
        return names


def build_resolvers(settings: Settings, store: ProfileStore) -> Dict[CloudProvider, CredentialResolver]:
    return {
        CloudProvider.AWS: CredentialResolver(
            CloudProvider.AWS, store, AWSSharedConfigSource(), settings.AWS_DEFAULT_REGION
        ),
        CloudProvider.AZURE: CredentialResolver(
            CloudProvider.AZURE, store, AzureEnvironmentSource(settings), settings.AZURE_DEFAULT_REGION
        ),
        CloudProvider.GCP: CredentialResolver(
            CloudProvider.GCP, store, GCPEnvironmentSource(settings), settings.GCP_DEFAULT_REGION
        ),
    }

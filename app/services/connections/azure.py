"""
Azure ambient credential source and credential construction.

The ambient source is the service principal configured through the
environment (AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET) bound to
AZURE_SUBSCRIPTION_ID. Without a secret, DefaultAzureCredential is used
(managed identity, Azure CLI login).
"""

from typing import List, Optional

from azure.identity.aio import ClientSecretCredential, DefaultAzureCredential

from app.core.config import Settings
from app.core.exceptions import ValidationError
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential

AMBIENT_PROFILE_NAME = "default"


class AzureEnvironmentSource:
    provider = CloudProvider.AZURE

    def __init__(self, settings: Settings):
        self.settings = settings

    async def lookup(self, profile_name: str) -> Optional[Credential]:
        subscription_id = self.settings.AZURE_SUBSCRIPTION_ID
        if not subscription_id or profile_name not in (AMBIENT_PROFILE_NAME, subscription_id):
            return None

        values = {"subscription_id": subscription_id}
        if self.settings.AZURE_CLIENT_SECRET:
            values.update(
                tenant_id=self.settings.AZURE_TENANT_ID,
                client_id=self.settings.AZURE_CLIENT_ID,
                client_secret=self.settings.AZURE_CLIENT_SECRET,
            )
        return Credential(
            profile_name=profile_name,
            provider=self.provider,
            region=None,
            values=values,
            source="ambient",
        )

    async def names(self) -> List[str]:
        return [AMBIENT_PROFILE_NAME] if self.settings.AZURE_SUBSCRIPTION_ID else []


def subscription_id_of(credential: Credential) -> str:
    subscription_id = credential.values.get("subscription_id")
    if not subscription_id:
        raise ValidationError(f"Azure profile '{credential.profile_name}' has no subscription_id")
    return subscription_id


def build_azure_credential(credential: Credential):
    """Async token credential for the Azure management clients. Callers own closing it."""
    values = credential.values
    if values.get("client_secret"):
        return ClientSecretCredential(
            tenant_id=values.get("tenant_id"),
            client_id=values.get("client_id"),
            client_secret=values["client_secret"],
        )
    return DefaultAzureCredential()

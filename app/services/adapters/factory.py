"""
Multi-Cloud Adapter Factory

Maps a resolved credential to the adapter for its provider.
"""

from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.services.adapters.base import BaseCostAdapter
from app.services.adapters.aws import AWSCostAdapter
from app.services.adapters.azure import AzureCostAdapter
from app.services.adapters.gcp import GCPComputeAdapter


class AdapterFactory:
    @staticmethod
    def get_adapter(credential: Credential, region: str) -> BaseCostAdapter:
        provider = CloudProvider(credential.provider)
        if provider == CloudProvider.AWS:
            return AWSCostAdapter(credential, region)
        elif provider == CloudProvider.AZURE:
            return AzureCostAdapter(credential, region)
        elif provider == CloudProvider.GCP:
            return GCPComputeAdapter(credential, region)
        raise ValueError(f"Unsupported provider: {provider}")

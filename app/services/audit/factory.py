from app.schemas.base import CloudProvider
from app.schemas.connections import Credential
from app.services.audit.base import BaseResourceAuditor
from app.services.audit.aws import AWSResourceAuditor
from app.services.audit.azure import AzureResourceAuditor
from app.services.audit.gcp import GCPResourceAuditor


class AuditorFactory:
    """
    Factory to instantiate the correct ResourceAuditor for a resolved credential.
    """

    @staticmethod
    def get_auditor(credential: Credential) -> BaseResourceAuditor:
        provider = CloudProvider(credential.provider)
        if provider == CloudProvider.AWS:
            return AWSResourceAuditor(credential)
        elif provider == CloudProvider.AZURE:
            return AzureResourceAuditor(credential)
        elif provider == CloudProvider.GCP:
            return GCPResourceAuditor(credential)
        raise ValueError(f"Unsupported provider: {provider}")

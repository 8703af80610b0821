"""
GCP ambient credential source and credential construction.

The ambient source is Application Default Credentials bound to GCP_PROJECT_ID.
"""

import json
from typing import List, Optional

import structlog
from google.oauth2 import service_account

from app.core.config import Settings
from app.core.exceptions import ValidationError
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential

logger = structlog.get_logger()

AMBIENT_PROFILE_NAME = "default"


class GCPEnvironmentSource:
    provider = CloudProvider.GCP

    def __init__(self, settings: Settings):
        self.settings = settings

    async def lookup(self, profile_name: str) -> Optional[Credential]:
        project_id = self.settings.GCP_PROJECT_ID
        if not project_id or profile_name not in (AMBIENT_PROFILE_NAME, project_id):
            return None
        return Credential(
            profile_name=profile_name,
            provider=self.provider,
            region=None,
            values={"project_id": project_id},
            source="ambient",
        )

    async def names(self) -> List[str]:
        return [AMBIENT_PROFILE_NAME] if self.settings.GCP_PROJECT_ID else []


def project_id_of(credential: Credential) -> str:
    project_id = credential.values.get("project_id")
    if not project_id:
        raise ValidationError(f"GCP profile '{credential.profile_name}' has no project_id")
    return project_id


def build_gcp_credentials(service_account_json: Optional[str]):
    """
    Service account credentials from a JSON key, or None to let the client
    libraries use Application Default Credentials.
    """
    if not service_account_json:
        return None
    try:
        info = json.loads(service_account_json)
        return service_account.Credentials.from_service_account_info(info)
    except (ValueError, KeyError) as e:
        logger.error("gcp_credentials_load_error", error=str(e))
        raise ValidationError("GCP service account JSON is invalid") from e

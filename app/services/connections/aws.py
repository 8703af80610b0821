"""
AWS ambient credential source.

Falls back to the local CLI configuration (~/.aws/config and
~/.aws/credentials) when a profile is not in the saved store.
"""

import asyncio
from typing import List, Optional

import botocore.session
import structlog

from app.schemas.base import CloudProvider
from app.schemas.connections import Credential

logger = structlog.get_logger()


class AWSSharedConfigSource:
    provider = CloudProvider.AWS

    async def lookup(self, profile_name: str) -> Optional[Credential]:
        # botocore parses the shared config files synchronously
        return await asyncio.to_thread(self._lookup, profile_name)

    def _lookup(self, profile_name: str) -> Optional[Credential]:
        session = botocore.session.Session()
        if profile_name not in session.available_profiles:
            return None

        profile_config = session.full_config.get("profiles", {}).get(profile_name, {})
        logger.debug("aws_ambient_profile_found", profile=profile_name)
        return Credential(
            profile_name=profile_name,
            provider=self.provider,
            region=profile_config.get("region"),
            values={"profile_name": profile_name},
            source="ambient",
        )

    async def names(self) -> List[str]:
        return await asyncio.to_thread(lambda: list(botocore.session.Session().available_profiles))

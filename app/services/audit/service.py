import asyncio
from typing import Dict, List, Optional, Tuple

import structlog

from app.core.exceptions import CostEngineError, ValidationError
from app.schemas.audit import AuditReport, ConnectionCheck, EfficiencyMetrics
from app.schemas.base import CloudProvider
from app.services.adapters.factory import AdapterFactory
from app.services.audit.efficiency import score_efficiency
from app.services.audit.factory import AuditorFactory
from app.services.connections.resolver import CredentialResolver

logger = structlog.get_logger()


class AuditService:
    """
    Entry point for resource audits.

    Resolving the profile and its account identity are whole-request steps:
    their failures propagate. Everything after that degrades per category.
    """

    def __init__(
        self,
        resolvers: Dict[CloudProvider, CredentialResolver],
        adapter_factory: type[AdapterFactory] = AdapterFactory,
        auditor_factory: type[AuditorFactory] = AuditorFactory,
    ):
        self.resolvers = resolvers
        self.adapter_factory = adapter_factory
        self.auditor_factory = auditor_factory

    def _resolver(self, provider: CloudProvider) -> CredentialResolver:
        provider = CloudProvider(provider)
        resolver = self.resolvers.get(provider)
        if resolver is None:
            raise ValidationError(f"No credential resolver configured for {provider.value}")
        return resolver

    async def _identify(self, provider: CloudProvider, profile_name: str):
        resolver = self._resolver(provider)
        credential = await resolver.resolve(profile_name)
        region = await resolver.resolve_region(profile_name)
        adapter = self.adapter_factory.get_adapter(credential, region)
        try:
            account_id = await adapter.get_account_id()
        finally:
            await adapter.close()
        return credential, region, account_id

    async def run(self, provider: CloudProvider, profile_name: str, regions: Optional[List[str]] = None) -> AuditReport:
        provider = CloudProvider(provider)
        credential, default_region, account_id = await self._identify(provider, profile_name)

        regions = [r.strip() for r in (regions or []) if r and r.strip()] or [default_region]

        auditor = self.auditor_factory.get_auditor(credential)
        try:
            return await auditor.audit(profile_name, account_id, regions)
        finally:
            await auditor.close()

    async def run_many(
        self,
        provider: CloudProvider,
        profile_names: List[str],
        regions: Optional[List[str]] = None,
    ) -> Tuple[List[AuditReport], Dict[str, str]]:
        """
        Audit several profiles concurrently.

        Returns the completed reports and a profile -> error message mapping
        for profiles whose credential or identity step failed.
        """
        provider = CloudProvider(provider)

        async def audit_one(profile_name: str):
            try:
                return await self.run(provider, profile_name, regions)
            except CostEngineError as e:
                logger.warning("profile_audit_failed", provider=provider.value, profile=profile_name, error=e.message)
                return e.message
            except Exception as e:
                logger.error(
                    "profile_audit_unexpected_error",
                    provider=provider.value,
                    profile=profile_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return str(e) or type(e).__name__

        outcomes = await asyncio.gather(*(audit_one(name) for name in profile_names))
        reports = [o for o in outcomes if isinstance(o, AuditReport)]
        errors = {name: o for name, o in zip(profile_names, outcomes) if not isinstance(o, AuditReport)}
        return reports, errors

    async def efficiency(
        self,
        providers: List[CloudProvider],
        regions: Optional[Dict[str, List[str]]] = None,
    ) -> Tuple[EfficiencyMetrics, Dict[str, Dict[str, str]]]:
        """
        Audit every known profile of each provider and score the result.

        A provider with no listable profiles, or whose every profile failed,
        is scored as failed. Per-profile errors are returned by provider.
        """
        providers = list(dict.fromkeys(CloudProvider(p) for p in providers))
        regions = regions or {}

        async def audit_provider(provider: CloudProvider):
            try:
                profile_names = await self.list_profiles(provider)
            except CostEngineError as e:
                return [], {}, e.message
            if not profile_names:
                return [], {}, f"No {provider.value} profiles configured"
            reports, errors = await self.run_many(provider, profile_names, regions.get(provider.value))
            failure = None if reports else "; ".join(f"{name}: {msg}" for name, msg in errors.items())
            return reports, errors, failure

        outcomes = await asyncio.gather(*(audit_provider(p) for p in providers))

        reports_by_provider: Dict[str, List[AuditReport]] = {}
        failed_providers: Dict[str, str] = {}
        profile_errors: Dict[str, Dict[str, str]] = {}
        for provider, (reports, errors, failure) in zip(providers, outcomes):
            if failure is not None:
                failed_providers[provider.value] = failure
            else:
                reports_by_provider[provider.value] = reports
            if errors:
                profile_errors[provider.value] = errors

        metrics = score_efficiency(reports_by_provider, failed_providers)
        logger.info(
            "efficiency_scored",
            providers=[p.value for p in providers],
            failed=list(failed_providers),
            overall_score=metrics.overall_score,
        )
        return metrics, profile_errors


    async def verify(self, provider: CloudProvider, profile_name: str) -> ConnectionCheck:
        """Resolve the profile and perform the identity call, reporting rather than raising."""
        provider = CloudProvider(provider)
        try:
            _, _, account_id = await self._identify(provider, profile_name)
        except CostEngineError as e:
            logger.info("connection_verify_failed", provider=provider.value, profile=profile_name, error=e.message)
            return ConnectionCheck(valid=False, error=e.message)
        return ConnectionCheck(valid=True, account_id=account_id)

    async def list_profiles(self, provider: CloudProvider) -> List[str]:
        return await self._resolver(provider).list_profiles()

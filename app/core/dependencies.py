from functools import lru_cache
from typing import Dict

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.schemas.base import CloudProvider
from app.services.analysis.forecaster import CostForecaster
from app.services.audit.service import AuditService
from app.services.connections.profiles import InMemoryProfileStore, JsonFileProfileStore, ProfileStore
from app.services.connections.resolver import CredentialResolver, build_resolvers
from app.services.costs.aggregator import CostAggregator
from app.services.costs.daily import DailyCostFetcher


@lru_cache
def get_profile_store() -> ProfileStore:
    settings = get_settings()
    if settings.SAVED_PROFILES_PATH:
        return JsonFileProfileStore(settings.SAVED_PROFILES_PATH)
    return InMemoryProfileStore()


def get_resolvers(
    store: ProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> Dict[CloudProvider, CredentialResolver]:
    return build_resolvers(settings, store)


def get_cost_aggregator(
    resolvers: Dict[CloudProvider, CredentialResolver] = Depends(get_resolvers),
) -> CostAggregator:
    return CostAggregator(resolvers)


def get_daily_cost_fetcher(
    aggregator: CostAggregator = Depends(get_cost_aggregator),
    settings: Settings = Depends(get_settings),
) -> DailyCostFetcher:
    return DailyCostFetcher(aggregator, settings)


def get_forecaster(
    fetcher: DailyCostFetcher = Depends(get_daily_cost_fetcher),
    settings: Settings = Depends(get_settings),
) -> CostForecaster:
    return CostForecaster(fetcher, settings)


def get_audit_service(
    resolvers: Dict[CloudProvider, CredentialResolver] = Depends(get_resolvers),
) -> AuditService:
    return AuditService(resolvers)

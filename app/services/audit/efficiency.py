"""
Resource Efficiency Scoring

Turns audit reports into utilization scores: a stopped instance or an
unattached volume is an unused resource, every scanned instance and volume
counts toward the total. Pure over its inputs; no provider calls.
"""

from typing import Dict, List, Mapping

from app.core.amounts import round_whole
from app.schemas.audit import AuditReport, EfficiencyMetrics, ProviderEfficiency


def _percent(part: int, whole: int) -> int:
    return round_whole(part / whole * 100)


def score_provider(reports: List[AuditReport]) -> ProviderEfficiency:
    """Profiles of one provider summed; an empty inventory scores 100."""
    unused_instances = sum(len(r.stopped_instances) for r in reports)
    unused_volumes = sum(len(r.unattached_volumes) for r in reports)
    total_instances = sum(r.inventory.instances for r in reports)
    total_volumes = sum(r.inventory.volumes for r in reports)

    total = total_instances + total_volumes
    unused = unused_instances + unused_volumes
    return ProviderEfficiency(
        score=_percent(total - unused, total) if total > 0 else 100,
        unused_instances=unused_instances,
        total_instances=total_instances,
        unused_volumes=unused_volumes,
        total_volumes=total_volumes,
        profiles_audited=len(reports),
    )


def score_efficiency(
    reports_by_provider: Mapping[str, List[AuditReport]],
    failed_providers: Mapping[str, str],
) -> EfficiencyMetrics:
    """
    Aggregate efficiency across providers.

    A provider in ``failed_providers`` produced no report at all: it appears
    in the breakdown with score 0 and its error, and is left out of the
    overall score. The overall score is the rounded mean of the audited
    providers' scores, 0 when none was audited.
    """
    breakdown: Dict[str, ProviderEfficiency] = {}
    for provider, reports in reports_by_provider.items():
        breakdown[provider] = score_provider(reports)
    for provider, error in failed_providers.items():
        if provider not in breakdown:
            breakdown[provider] = ProviderEfficiency(score=0, error=error)

    audited = [breakdown[p] for p in reports_by_provider]
    total = sum(p.total_instances + p.total_volumes for p in audited)
    unused = sum(p.unused_instances + p.unused_volumes for p in audited)

    return EfficiencyMetrics(
        overall_score=round_whole(sum(p.score for p in audited) / len(audited)) if audited else 0,
        resource_utilization=_percent(total - unused, total) if total > 0 else 100,
        waste_ratio=_percent(unused, total) if total > 0 else 0,
        total_resources=total,
        unused_resources=unused,
        breakdown=breakdown,
    )

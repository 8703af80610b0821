"""
Audit Services Module

Finds idle/waste resources and classifies budget consumption:
- AuditService: resolves the profile and account, then runs the audit
- AuditorFactory: creates provider-specific auditors
- classify_budget: OK / WARNING / EXCEEDED thresholds
- score_efficiency: utilization scores over audit reports
"""

from .budgets import classify_budget
from .efficiency import score_efficiency
from .factory import AuditorFactory
from .service import AuditService

__all__ = ["AuditService", "AuditorFactory", "classify_budget", "score_efficiency"]

from typing import Optional, Dict, Any, Mapping


class CostEngineError(Exception):
    """Base exception for all CloudLedger errors."""
    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class CredentialNotFound(CostEngineError):
    """Raised when neither the saved store nor the ambient source knows a profile."""
    status_code = 404

    def __init__(self, profile_name: str, provider: str):
        super().__init__(
            f"Profile '{profile_name}' not found for {provider}",
            code="credential_not_found",
            details={"profile": profile_name, "provider": provider},
        )


class IdentityLookupFailed(CostEngineError):
    """Raised when the account/identity call for a resolved credential fails."""
    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="identity_lookup_failed", details=details)


class ProviderQueryFailed(CostEngineError):
    """Raised when a provider cost or resource query fails."""
    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="provider_query_failed", details=details)


class ValidationError(CostEngineError):
    """Raised on bad input shape or out-of-range values."""
    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="validation_error", details=details)


class PartialFailure(CostEngineError):
    """
    One or more sub-units (regions, providers) of a category failed while others succeeded.

    Used as a value attached to a report, not raised. The message lists every
    failing scope as ``scope: reason`` joined by ``; `` so callers can retry
    only the failed slice.
    """
    status_code = 207

    def __init__(self, category: str, failures: Mapping[str, str]):
        self.category = category
        self.failures = dict(failures)
        message = "; ".join(f"{scope}: {reason}" for scope, reason in self.failures.items())
        super().__init__(message, code="partial_failure", details={"category": category, "failures": self.failures})

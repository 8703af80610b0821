from app.core.amounts import round_currency
from app.schemas.audit import BudgetState, BudgetStatus

WARNING_THRESHOLD_PERCENT = 80
EXCEEDED_THRESHOLD_PERCENT = 100


def budget_state(percent_used: float) -> BudgetState:
    if percent_used >= EXCEEDED_THRESHOLD_PERCENT:
        return BudgetState.EXCEEDED
    if percent_used >= WARNING_THRESHOLD_PERCENT:
        return BudgetState.WARNING
    return BudgetState.OK


def classify_budget(name: str, limit: float, actual_spend: float, forecasted_spend: float = 0.0) -> BudgetStatus:
    """
    percentUsed = actual / limit * 100 rounded to 2 decimals (0 when limit <= 0).
    The state is derived from the rounded percentage.
    """
    percent_used = round_currency(actual_spend / limit * 100) if limit > 0 else 0.0
    return BudgetStatus(
        name=name,
        limit=round_currency(limit),
        actual_spend=round_currency(actual_spend),
        forecasted_spend=round_currency(forecasted_spend),
        percent_used=percent_used,
        status=budget_state(percent_used),
    )

"""
Spending analytics endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import ok, raise_banking_error
from ..analytics import AnalyticsPeriod
from ..errors import BankingError


router = APIRouter()


@router.get("")
async def get_analytics(
    period: str = "month",
    account: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Spending summary for one account (the first account by default)"""
    try:
        analytics_period = AnalyticsPeriod(period)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"error": "INVALID_PERIOD", "message": f"Unknown period {period!r}; use week, month or year"}
        )

    try:
        resolved = system.account_manager.resolve_account(user_id, account)
    except BankingError as e:
        raise_banking_error(e)

    summary = system.analytics.summarize(resolved.account_number, analytics_period)
    return ok(summary.to_dict())

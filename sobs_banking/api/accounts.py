"""
Account endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import DepositBody, movement_response, ok, raise_banking_error
from ..errors import BankingError
from ..movements import DepositRequest


router = APIRouter()


@router.get("")
async def list_accounts(
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Every account of the user with balance and card settings"""
    views = system.account_manager.list_accounts_with_settings(user_id)
    return ok([view.to_dict() for view in views])


@router.get("/{account_number}/transactions")
async def get_account_transactions(
    account_number: str,
    limit: Optional[int] = None,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transaction history for an account, newest first"""
    try:
        account = system.account_manager.resolve_account(user_id, account_number)
        history = system.ledger.get_history(account.account_number)
    except BankingError as e:
        raise_banking_error(e)

    if limit is None:
        limit = system.config.history_default_limit
    page = history[:max(limit, 0)]
    return ok({
        "transactions": [record.to_dict() for record in page],
        "total_count": len(history)
    })


@router.post("/deposit")
async def deposit(
    request: DepositBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Deposit into one of the user's accounts"""
    result = system.movements.deposit(user_id, DepositRequest(
        amount=request.amount,
        account_number=request.account_number,
        description=request.description
    ))
    return movement_response(result, "Deposit successful")

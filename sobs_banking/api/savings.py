"""
Savings goal endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import CreateSavingsGoalBody, SavingsContributionBody, movement_response, ok, raise_banking_error
from ..errors import BankingError
from ..movements import SavingsContributionRequest, parse_amount, to_account_money


router = APIRouter()


@router.get("/goals")
async def list_goals(
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    goals = system.savings_goals.list_goals(user_id)
    return ok([{**goal.to_dict(), "progress": str(goal.progress)} for goal in goals])


@router.post("/goals", status_code=status.HTTP_201_CREATED)
async def create_goal(
    request: CreateSavingsGoalBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Create a goal in the currency of the given (or first) account"""
    try:
        account = system.account_manager.resolve_account(user_id, request.account_number)
        target = to_account_money(parse_amount(request.target_amount), account, request.target_amount)
        goal = system.savings_goals.create_goal(
            user_id=user_id,
            name=request.name,
            target_amount=target,
            icon=request.icon
        )
    except BankingError as e:
        raise_banking_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "INVALID_REQUEST", "message": str(e)})

    return ok({**goal.to_dict(), "progress": str(goal.progress)}, "Savings goal created")


@router.post("/goals/{goal_id}/deposit")
async def contribute(
    goal_id: str,
    request: SavingsContributionBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Move money from an account into the goal"""
    result = system.movements.contribute_to_savings(user_id, SavingsContributionRequest(
        goal_id=goal_id,
        amount=request.amount,
        from_account_number=request.from_account_number
    ))
    return movement_response(result, "Savings goal updated")

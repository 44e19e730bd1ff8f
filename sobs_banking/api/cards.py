"""
Card control endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import CardSettingsUpdate, ok, raise_banking_error
from ..errors import BankingError, InvalidSettings


router = APIRouter()


@router.get("/{account_number}/settings")
async def get_card_settings(
    account_number: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        account = system.account_manager.resolve_account(user_id, account_number)
    except BankingError as e:
        raise_banking_error(e)
    return ok(system.card_settings.get(account.account_number).to_dict())


@router.put("/{account_number}/settings")
async def update_card_settings(
    account_number: str,
    request: CardSettingsUpdate,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Change only the settings present in the body"""
    try:
        account = system.account_manager.resolve_account(user_id, account_number)
        settings = system.card_settings.update(
            account.account_number, user_id=user_id,
            **request.model_dump(exclude_unset=True)
        )
    except BankingError as e:
        raise_banking_error(e)
    except InvalidSettings as e:
        raise HTTPException(status_code=400, detail={"error": "INVALID_SETTINGS", "message": str(e)})

    return ok(settings.to_dict(), "Card settings updated")

"""
Transfer and bill payment endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import BillPaymentBody, TransferBody, movement_response, raise_banking_error
from ..errors import BankingError
from ..movements import BillPaymentRequest, TransferRequest


router = APIRouter()
bills_router = APIRouter()


@router.post("")
async def transfer(
    request: TransferBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transfer to an external account or a saved beneficiary"""
    recipient = request.recipient_account_number
    try:
        if request.beneficiary_id:
            if recipient:
                raise ValueError("Send either recipient_account_number or beneficiary_id, not both")
            recipient = system.beneficiaries.get_beneficiary(user_id, request.beneficiary_id).account_number
        movement = TransferRequest(
            recipient_account_number=recipient,
            amount=request.amount,
            from_account_number=request.from_account_number,
            description=request.description
        )
    except BankingError as e:
        raise_banking_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "INVALID_REQUEST", "message": str(e)})

    return movement_response(system.movements.transfer(user_id, movement), "Transfer successful")


@bills_router.post("/pay")
async def pay_bill(
    request: BillPaymentBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Pay a provider's bill"""
    try:
        movement = BillPaymentRequest(
            provider=request.provider,
            amount=request.amount,
            bill_reference=request.bill_reference,
            from_account_number=request.from_account_number,
            description=request.description
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "INVALID_REQUEST", "message": str(e)})

    return movement_response(system.movements.pay_bill(user_id, movement), "Bill paid successfully")

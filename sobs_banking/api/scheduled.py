"""
Scheduled payment endpoints
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import ScheduledPaymentBody, ScheduledPaymentUpdate, ok, raise_banking_error
from ..errors import BankingError
from ..movements import parse_amount, to_account_money
from ..scheduled import ScheduledPayment


router = APIRouter()


def _view(payment: ScheduledPayment) -> Dict[str, Any]:
    next_due = payment.next_due_date(datetime.now(timezone.utc).date())
    return {**payment.to_dict(), "next_due_date": next_due.isoformat() if next_due else None}


def _invalid(error: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "INVALID_REQUEST", "message": str(error)})


@router.get("")
async def list_payments(
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    return ok([_view(p) for p in system.scheduled_payments.list_payments(user_id)])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: ScheduledPaymentBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Schedule a payment in the currency of the given (or first) account"""
    recipient = request.recipient_account
    try:
        if request.beneficiary_id:
            if recipient:
                raise ValueError("Send either recipient_account or beneficiary_id, not both")
            recipient = system.beneficiaries.get_beneficiary(user_id, request.beneficiary_id).account_number
        account = system.account_manager.resolve_account(user_id, request.from_account_number)
        amount = to_account_money(parse_amount(request.amount), account, request.amount)
        payment = system.scheduled_payments.create_payment(
            user_id=user_id,
            name=request.name,
            amount=amount,
            recipient_account=recipient,
            frequency=request.frequency,
            payment_type=request.payment_type,
            start_date=request.start_date,
            from_account_number=account.account_number
        )
    except BankingError as e:
        raise_banking_error(e)
    except ValueError as e:
        raise _invalid(e)

    return ok(_view(payment), "Scheduled payment created")


@router.put("/{payment_id}")
async def update_payment(
    payment_id: str,
    request: ScheduledPaymentUpdate,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Change only the fields present in the body"""
    try:
        payment = system.scheduled_payments.update_payment(
            user_id, payment_id, **request.model_dump(exclude_unset=True)
        )
    except BankingError as e:
        raise_banking_error(e)
    except ValueError as e:
        raise _invalid(e)
    return ok(_view(payment), "Scheduled payment updated")


@router.post("/{payment_id}/pause")
async def pause_payment(
    payment_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        payment = system.scheduled_payments.pause(user_id, payment_id)
    except BankingError as e:
        raise_banking_error(e)
    return ok(_view(payment), "Scheduled payment paused")


@router.post("/{payment_id}/resume")
async def resume_payment(
    payment_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        payment = system.scheduled_payments.resume(user_id, payment_id)
    except BankingError as e:
        raise_banking_error(e)
    return ok(_view(payment), "Scheduled payment resumed")


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        system.scheduled_payments.delete_payment(user_id, payment_id)
    except BankingError as e:
        raise_banking_error(e)
    return ok({"id": payment_id, "deleted": True})

"""
Pydantic schemas for API requests and the response envelope
"""

from datetime import date
from typing import Any, Dict, Optional
from fastapi import HTTPException
from pydantic import BaseModel, Field

from ..errors import BankingError, FailureKind
from ..movements import MovementResult


# Auth schemas
class RegisterRequest(BaseModel):
    full_name: str
    email: str
    password: str
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class VerifyOTPRequest(BaseModel):
    session_id: str
    otp: str


# Money movement schemas; amounts are validated by the movement service
class DepositBody(BaseModel):
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    account_number: Optional[str] = None
    description: Optional[str] = None


class TransferBody(BaseModel):
    """Recipient is either an account number or a saved beneficiary"""
    recipient_account_number: Optional[str] = None
    beneficiary_id: Optional[str] = None
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    from_account_number: Optional[str] = None
    description: Optional[str] = None


class BillPaymentBody(BaseModel):
    provider: str
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    bill_reference: Optional[str] = None
    from_account_number: Optional[str] = None
    description: Optional[str] = None


class SavingsContributionBody(BaseModel):
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    from_account_number: Optional[str] = None


class CreateSavingsGoalBody(BaseModel):
    name: str
    target_amount: Any = Field(..., description="Positive decimal amount, string or number")
    icon: str = "savings"
    account_number: Optional[str] = Field(None, description="Account whose currency the goal uses")


# Beneficiary schemas
class BeneficiaryBody(BaseModel):
    name: str
    account_number: str
    bank: Optional[str] = None
    nickname: Optional[str] = None
    is_favorite: bool = False


class BeneficiaryUpdate(BaseModel):
    """Partial update; only the fields sent are changed"""
    name: Optional[str] = None
    account_number: Optional[str] = None
    bank: Optional[str] = None
    nickname: Optional[str] = None
    is_favorite: Optional[bool] = None


# Scheduled payment schemas
class ScheduledPaymentBody(BaseModel):
    name: str
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    recipient_account: Optional[str] = None
    beneficiary_id: Optional[str] = Field(None, description="Saved beneficiary to pay instead of recipient_account")
    frequency: str = "monthly"
    payment_type: str = "transfer"
    start_date: Optional[date] = None
    from_account_number: Optional[str] = None


class ScheduledPaymentUpdate(BaseModel):
    """Partial update; only the fields sent are changed"""
    name: Optional[str] = None
    amount: Any = Field(None, description="Positive decimal amount, string or number")
    recipient_account: Optional[str] = None
    frequency: Optional[str] = None
    payment_type: Optional[str] = None
    start_date: Optional[date] = None
    is_paused: Optional[bool] = None


# Card schemas
class CardSettingsUpdate(BaseModel):
    """Partial update; only the fields sent are changed"""
    is_frozen: Optional[bool] = None
    spending_limit: Any = Field(None, description="Decimal limit; null removes the limit")
    online_purchases: Optional[bool] = None
    international_transactions: Optional[bool] = None
    contactless_payments: Optional[bool] = None


# Response envelope
_NOT_FOUND_KINDS = {
    FailureKind.ACCOUNT_NOT_FOUND,
    FailureKind.SAVINGS_GOAL_NOT_FOUND,
    FailureKind.BENEFICIARY_NOT_FOUND,
    FailureKind.SCHEDULED_PAYMENT_NOT_FOUND,
}


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    result = {"success": True, "data": data}
    if message:
        result["message"] = message
    return result


def failure_status(kind: FailureKind) -> int:
    return 404 if kind in _NOT_FOUND_KINDS else 400


def raise_banking_error(error: BankingError) -> None:
    raise HTTPException(status_code=failure_status(error.kind), detail=error.to_dict())


def movement_response(result: MovementResult, message: str) -> Dict[str, Any]:
    """Success envelope for a posted movement, or the failure as an HTTP error"""
    if not result.success:
        raise HTTPException(status_code=failure_status(result.failure.kind), detail=result.failure.to_dict())
    return ok(result.to_dict(), message)

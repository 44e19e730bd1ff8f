"""
Saved beneficiary endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import BeneficiaryBody, BeneficiaryUpdate, ok, raise_banking_error
from ..errors import BankingError


router = APIRouter()


def _invalid(error: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "INVALID_REQUEST", "message": str(error)})


@router.get("")
async def list_beneficiaries(
    favorites_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    beneficiaries = system.beneficiaries.list_beneficiaries(user_id, favorites_only=favorites_only)
    return ok([b.to_dict() for b in beneficiaries])


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_beneficiary(
    request: BeneficiaryBody,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        beneficiary = system.beneficiaries.add_beneficiary(user_id=user_id, **request.model_dump())
    except ValueError as e:
        raise _invalid(e)
    return ok(beneficiary.to_dict(), "Beneficiary added")


@router.put("/{beneficiary_id}")
async def update_beneficiary(
    beneficiary_id: str,
    request: BeneficiaryUpdate,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Change only the fields present in the body"""
    try:
        beneficiary = system.beneficiaries.update_beneficiary(
            user_id, beneficiary_id, **request.model_dump(exclude_unset=True)
        )
    except BankingError as e:
        raise_banking_error(e)
    except ValueError as e:
        raise _invalid(e)
    return ok(beneficiary.to_dict(), "Beneficiary updated")


@router.delete("/{beneficiary_id}")
async def remove_beneficiary(
    beneficiary_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    try:
        system.beneficiaries.remove_beneficiary(user_id, beneficiary_id)
    except BankingError as e:
        raise_banking_error(e)
    return ok({"id": beneficiary_id, "deleted": True})

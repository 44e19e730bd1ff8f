"""
Registration and demo login endpoints
"""

from fastapi import APIRouter, Depends, Header, HTTPException, status
from typing import Optional

from .auth import BankingSystem, DemoSessionStore, get_banking_system, get_session_store
from .schemas import LoginRequest, RegisterRequest, VerifyOTPRequest, ok


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a user and open their first savings account"""
    try:
        user = system.user_directory.register_user(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
            phone=request.phone
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "REGISTRATION_FAILED", "message": str(e)})

    return ok(user.to_public_dict(), "Registration successful. Please login.")


@router.post("/login")
async def login(
    request: LoginRequest,
    system: BankingSystem = Depends(get_banking_system),
    sessions: DemoSessionStore = Depends(get_session_store)
):
    """Check credentials and start an OTP session; the code is echoed back in demo mode"""
    user = system.user_directory.authenticate(request.email, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "INVALID_CREDENTIALS", "message": "Invalid email or password"}
        )

    pending = sessions.start_login(user.id)
    return ok({
        "session_id": pending.session_id,
        "requires_otp": True,
        "debug_otp": pending.otp,
        "expires_at": pending.expires_at.isoformat()
    })


@router.post("/verify-otp")
async def verify_otp(
    request: VerifyOTPRequest,
    system: BankingSystem = Depends(get_banking_system),
    sessions: DemoSessionStore = Depends(get_session_store)
):
    """Exchange a valid one-time code for a bearer token"""
    session = sessions.verify_otp(request.session_id, request.otp)
    if session is None:
        raise HTTPException(status_code=400, detail={"error": "INVALID_OTP", "message": "Invalid or expired OTP"})

    user = system.user_directory.get_user(session.user_id)
    if system.config.enable_notifications:
        system.notifications.notify_login(user.id)
    return ok({
        "session_token": session.token,
        "customer_id": user.id,
        "full_name": user.full_name,
        "email": user.email
    })


@router.post("/logout")
async def logout(
    authorization: Optional[str] = Header(None),
    sessions: DemoSessionStore = Depends(get_session_store)
):
    """Revoke the bearer token sent with the request"""
    _, _, token = (authorization or "").partition(" ")
    return ok({"revoked": sessions.revoke(token.strip())})

"""
Authentication endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from .dependencies import BankingSystem, get_banking_system, get_identity, get_transport
from .schemas import LoginRequest, SignupRequest
from ..transport import RequestTransport, SessionCookie
from ..users import AuthenticatedIdentity


router = APIRouter()


def apply_cookie(response: Response, cookie: SessionCookie) -> None:
    response.set_cookie(
        key=cookie.name,
        value=cookie.value,
        max_age=cookie.max_age,
        path=cookie.path,
        httponly=cookie.http_only,
        samesite=cookie.same_site,
    )


@router.post("/signup")
async def signup(
    request: SignupRequest,
    response: Response,
    identity: Optional[AuthenticatedIdentity] = Depends(get_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a new user and start their session"""
    result = system.auth.signup(request.model_dump(), identity)
    apply_cookie(response, result.cookie)
    return {
        "success": True,
        "user": result.user.to_dict(),
        "token": result.token,
        "notifications": result.notifications,
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    identity: Optional[AuthenticatedIdentity] = Depends(get_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Authenticate with email and password"""
    result = system.auth.login(request.email, request.password, identity)
    apply_cookie(response, result.cookie)
    return {"success": True, "user": result.user.to_dict(), "token": result.token}


@router.post("/logout")
async def logout(
    response: Response,
    identity: Optional[AuthenticatedIdentity] = Depends(get_identity),
    transport: RequestTransport = Depends(get_transport),
    system: BankingSystem = Depends(get_banking_system)
):
    """End the current session; safe to call without one"""
    result = system.auth.logout(identity, transport)
    apply_cookie(response, result.cookie)
    return {"success": result.success, "message": result.message}


@router.get("/me")
async def me(
    identity: Optional[AuthenticatedIdentity] = Depends(get_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.auth.me(identity)
    return {"user": user.to_dict() if user else None}

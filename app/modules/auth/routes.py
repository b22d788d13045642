from fastapi import APIRouter, Depends
from typing import Optional

from app.config.settings import settings
from app.modules.auth.schemas import LoginRequest, RegisterRequest
from app.modules.auth.service import AuthService
from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import RequestMeta, UserContext
from app.core.dependencies import (
    get_auth_service, get_optional_workspace_context, get_request_meta, get_session_token
)
from app.core.exceptions import AuthenticationError
from app.core.responses import success_response
from app.config.permissions_config import get_permissions_for_role

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register")
async def register(
    register_data: RegisterRequest,
    meta: RequestMeta = Depends(get_request_meta),
    service: AuthService = Depends(get_auth_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Register a new user with their own workspace (as owner)"""
    with audit.on_failure(meta, "USER_REGISTER_ERROR", email=register_data.email):
        result = service.register(register_data)
    audit.log(meta.event(
        "USER_REGISTERED",
        metadata={"email": result.email},
        user_id=result.user_id,
        workspace_id=result.workspace_id,
    ))
    return success_response(result, result.message, status_code=201)


@router.post("/login")
async def login(
    login_data: LoginRequest,
    meta: RequestMeta = Depends(get_request_meta),
    service: AuthService = Depends(get_auth_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Login and get access token; the token is also set as the session cookie"""
    with audit.on_failure(meta, "LOGIN_FAILED", email=login_data.email):
        token = service.login(login_data)
    audit.log(meta.event("LOGIN_SUCCESS", user_id=token.user_id))
    response = success_response(token, "Logged in successfully")
    response.set_cookie(
        settings.session_cookie_name,
        token.access_token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/logout")
async def logout(
    meta: RequestMeta = Depends(get_request_meta),
    token: Optional[str] = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Logout and invalidate token"""
    if not token:
        audit.log(meta.event("UNAUTHORIZED_ACCESS_ATTEMPT", metadata={"error": "missing session"}), "warn")
        raise AuthenticationError()
    revoked = service.logout(token)
    audit.log(meta.event("LOGOUT", metadata={"revoked": revoked}))
    response = success_response(message="Logged out successfully")
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/me")
async def get_me(
    current: UserContext = Depends(get_optional_workspace_context),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Get current authenticated user and their permissions (for frontend UI)."""
    role = getattr(current, "role", None)
    audit.log(current.event("SESSION_ACCESSED"))
    return success_response({
        **current.user,
        "workspace_id": getattr(current, "workspace_id", None),
        "role": role.value if role else None,
        "permissions": get_permissions_for_role(role) if role else [],
    })

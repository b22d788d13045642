"""
Core dependencies for route protection and permission checking.

Resolution order for a protected route:
    session token  -> 401 when missing/invalid
    workspace membership -> 401 when none/inactive (400 when the workspace header is required but absent)
    role check     -> 403
    workspace active -> 403
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic.alias_generators import to_snake
from supabase import Client

from app.config.permissions_config import minimum_role
from app.config.settings import settings
from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import AuthContext, Membership, RequestMeta, UserContext
from app.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from app.core.roles import Role
from app.database.supabase_client import first_row, get_service_supabase, get_supabase
from app.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

MEMBER_COLUMNS = "id, user_id, workspace_id, role, is_active, created_at"
WORKSPACE_COLUMNS = "id, name, description, settings, is_active, plan_type, created_at"


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        path=request.url.path,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    admin_client: Client = Depends(get_service_supabase),
) -> AuthService:
    return AuthService(supabase, admin_client=admin_client)


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name) or None


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
) -> UserContext:
    """Validate the session with Supabase Auth; fail closed with 401."""
    meta = get_request_meta(request)
    if not token:
        audit.log(meta.event("UNAUTHORIZED_ACCESS_ATTEMPT", metadata={"error": "missing session"}), "warn")
        raise AuthenticationError()
    try:
        user = auth_service.get_current_user(token)
    except AuthenticationError as e:
        audit.log(meta.event("UNAUTHORIZED_ACCESS_ATTEMPT", metadata={"error": e.message}), "warn")
        raise
    context = UserContext(user=user, meta=meta)
    request.state.user = user
    return context


def find_membership(
    supabase: Client,
    user_id: str,
    workspace_id: Optional[str] = None,
) -> Optional[Membership]:
    """
    Active membership of `user_id` in `workspace_id`, or, when no workspace is
    named, the user's oldest active membership. Returns None when there is none
    or the workspace row is gone.
    """
    query = supabase.table("workspace_members")\
        .select(MEMBER_COLUMNS)\
        .eq("user_id", user_id)\
        .eq("is_active", True)
    if workspace_id:
        query = query.eq("workspace_id", workspace_id)
    else:
        query = query.order("created_at", desc=False)
    row = first_row(query, "Failed to resolve workspace membership")
    if not row:
        return None
    workspace = first_row(
        supabase.table("workspaces").select(WORKSPACE_COLUMNS).eq("id", row["workspace_id"]),
        "Failed to resolve workspace",
    )
    if not workspace:
        return None
    return Membership.from_row(row, workspace)


def requested_workspace_id(request: Request) -> Optional[str]:
    value = request.headers.get(settings.workspace_header)
    return value.strip() if value and value.strip() else None


def get_workspace_context(
    request: Request,
    current: UserContext = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    audit: SecurityEventLogger = Depends(get_audit_logger),
) -> AuthContext:
    """Resolve the caller's membership in the workspace named by the request."""
    workspace_id = requested_workspace_id(request)
    if workspace_id is None and settings.require_workspace_header:
        audit.log(current.event("WORKSPACE_CONTEXT_MISSING"), "warn")
        raise ValidationError(
            f"{settings.workspace_header} header is required",
            errors=[{"field": settings.workspace_header, "message": "Field required"}],
        )
    membership = find_membership(supabase, current.user_id, workspace_id)
    if membership is None:
        audit.log(current.event(
            "WORKSPACE_ACCESS_DENIED",
            metadata={"requestedWorkspace": workspace_id},
        ), "warn")
        raise AuthenticationError("No active workspace membership found", code="NO_WORKSPACE_MEMBERSHIP")
    context = AuthContext(user=current.user, meta=current.meta, member=membership)
    request.state.workspace_member = membership
    return context


def get_optional_workspace_context(
    request: Request,
    current: UserContext = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
) -> UserContext:
    """Like get_workspace_context but returns the bare UserContext when no membership applies."""
    workspace_id = requested_workspace_id(request)
    membership = find_membership(supabase, current.user_id, workspace_id)
    if membership is None:
        return current
    return AuthContext(user=current.user, meta=current.meta, member=membership)


def require_role(minimum: Role):
    """Factory function to create a role check dependency"""
    def check_role(
        context: AuthContext = Depends(get_workspace_context),
        audit: SecurityEventLogger = Depends(get_audit_logger),
    ) -> AuthContext:
        if not context.role.at_least(minimum):
            audit.log(context.event(
                "ROLE_ACCESS_DENIED",
                metadata={"userRole": context.role.value, "requiredRole": minimum.value},
            ), "warn")
            raise AuthorizationError(f"Access denied. Required role: {minimum.value} or higher")
        if not context.member.workspace.get("is_active", True):
            audit.log(context.event("WORKSPACE_INACTIVE_ACCESS", metadata={"role": context.role.value}), "warn")
            raise AuthorizationError("Workspace is inactive", code="WORKSPACE_INACTIVE")
        return context
    return check_role


def require_permission(required_permission: str):
    """Role check for a named permission from permissions_config"""
    return require_role(minimum_role(required_permission))


@dataclass
class Pagination:
    page: int = 1
    limit: int = 20
    sort_by: Optional[str] = None
    sort_order: str = "asc"

    @property
    def start(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def end(self) -> int:
        return self.page * self.limit - 1

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"

    def sort_column(self, allowed, default: str) -> str:
        """Whitelisted column for `sortBy` (camelCase accepted), else `default`."""
        column = to_snake(self.sort_by) if self.sort_by else None
        return column if column in allowed else default

    def summary(self, total: int) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": -(-total // self.limit),
        }


def _to_int(value: Optional[str], default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get_pagination(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
) -> Pagination:
    return Pagination(
        page=max(1, _to_int(page, 1)),
        limit=min(100, max(1, _to_int(limit, 20))),
        sort_by=sort_by or None,
        sort_order="desc" if sort_order == "desc" else "asc",
    )


def count_of(result) -> int:
    count = getattr(result, "count", None)
    if count is None:
        return len(result.data or [])
    return count


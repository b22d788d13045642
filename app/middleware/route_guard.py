"""
Session gate for page (non-API) routes.

API routes authenticate through the route dependencies and answer 401/403;
page routes instead redirect: to the login page when there is no valid
session, and to the dashboard when a manager-only page is requested by a
member below admin.
"""

import logging
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from app.config.permissions_config import ROUTE_PERMISSIONS, matches_route
from app.config.settings import settings
from app.core.dependencies import find_membership, requested_workspace_id
from app.core.exceptions import AppError
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"


def resolve_supabase(request: Request):
    """The Supabase client the routes would get, honouring dependency overrides."""
    provider = request.app.dependency_overrides.get(get_supabase, get_supabase)
    return provider()


def session_token(request: Request):
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.session_cookie_name) or None


class RouteGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path.startswith("/api/") or matches_route(path, ROUTE_PERMISSIONS["public"]):
            return await call_next(request)

        token = session_token(request)
        supabase = resolve_supabase(request)
        user = None
        if token:
            try:
                user = AuthService(supabase).get_current_user(token)
            except AppError:
                user = None
        if user is None:
            return RedirectResponse(
                f"{LOGIN_PATH}?{urlencode({'redirectTo': path})}", status_code=307
            )

        if matches_route(path, ROUTE_PERMISSIONS["manager"]):
            try:
                membership = find_membership(supabase, user["id"], requested_workspace_id(request))
            except AppError as e:
                logger.error("Manager route check failed for %s: %s", user["id"], e)
                membership = None
            if membership is None or not membership.is_manager:
                return RedirectResponse(DASHBOARD_PATH, status_code=307)

        request.state.user = user
        return await call_next(request)

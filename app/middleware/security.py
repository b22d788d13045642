import logging
from typing import Iterable, Optional, Set

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from app.config.settings import settings

logger = logging.getLogger(__name__)

SECURITY_HEADERS = [
    (b"X-Frame-Options", b"DENY"),
    (b"X-Content-Type-Options", b"nosniff"),
    (b"X-XSS-Protection", b"1; mode=block"),
    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
    (b"Permissions-Policy", b"camera=(), microphone=(), geolocation=()"),
]

UNSAFE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                present = {name.lower() for name, _ in headers}
                headers.extend(
                    (name, value) for name, value in SECURITY_HEADERS
                    if name.lower() not in present
                )
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Origin check for state-changing requests. A request that carries an Origin
    header must come from this host or from a configured front-end origin;
    requests without Origin (server-to-server, curl) pass.
    """

    def __init__(self, app, trusted_origins: Optional[Iterable[str]] = None):
        super().__init__(app)
        if trusted_origins is None:
            trusted_origins = settings.get_cors_origins_list() + settings.get_csrf_trusted_origins_list()
        self.trusted_origins: Set[str] = {origin.rstrip("/") for origin in trusted_origins}

    def allowed_origins(self, request: Request) -> Set[str]:
        host = request.headers.get("host")
        origins = set(self.trusted_origins)
        if host:
            origins.update({f"http://{host}", f"https://{host}"})
        return origins

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method in UNSAFE_METHODS:
            origin = request.headers.get("origin")
            if origin and origin.rstrip("/") not in self.allowed_origins(request):
                logger.warning("CSRF origin rejected: %s %s from %s", request.method, request.url.path, origin)
                return PlainTextResponse("CSRF validation failed", status_code=403)
        return await call_next(request)

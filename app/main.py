import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config.settings import settings
from app.core.audit import audit_logger, is_audited
from app.core.dependencies import get_request_meta
from app.core.exceptions import AppError
from app.core.logging import setup_logging
from app.core.responses import error_content
from app.core.validation import format_errors
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.route_guard import RouteGuardMiddleware
from app.middleware.security import CSRFMiddleware, SecurityHeadersMiddleware
from app.modules.auth import routes as auth_routes
from app.modules.eod import routes as eod_routes
from app.modules.health import routes as health_routes
from app.modules.organization import routes as organization_routes
from app.modules.products import routes as products_routes
from app.modules.profile import routes as profile_routes
from app.modules.team import routes as team_routes
from app.modules.uploads import routes as uploads_routes


setup_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    redirect_slashes=False,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    message = exc.message
    if exc.status_code >= 500 and settings.is_production:
        message = "Internal server error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(message, exc.code, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = format_errors(exc.errors())
    audit_logger.log(
        get_request_meta(request).event("VALIDATION_FAILED", metadata={"errors": errors}),
        "warn",
    )
    return JSONResponse(
        status_code=400,
        content=error_content("Invalid input data", "VALIDATION_ERROR", {"validation": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if not is_audited(exc):
        audit_logger.log(
            get_request_meta(request).event("UNEXPECTED_ERROR", metadata={"error": str(exc)}),
            "error",
        )
    if settings.is_production:
        return JSONResponse(status_code=500, content=error_content("Internal server error", "INTERNAL_ERROR"))
    return JSONResponse(status_code=500, content=error_content(str(exc), "INTERNAL_ERROR"))


# Added innermost first: the request passes CORS, security headers,
# rate limiting, CSRF and the page route guard in that order.
app.add_middleware(RouteGuardMiddleware)
app.add_middleware(CSRFMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(health_routes.router)
app.include_router(auth_routes.router, prefix="/api")
app.include_router(eod_routes.router, prefix="/api")
app.include_router(products_routes.router, prefix="/api")
app.include_router(team_routes.router, prefix="/api")
app.include_router(profile_routes.router, prefix="/api")
app.include_router(uploads_routes.router, prefix="/api")
app.include_router(organization_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Application startup (environment=%s, rate limit storage=%s)",
        settings.environment,
        settings.rate_limit_storage_uri.split("://", 1)[0],
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}

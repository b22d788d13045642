from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from supabase import Client

from app.database.supabase_client import get_service_supabase, get_supabase
from app.modules.health.service import UNHEALTHY, HealthService

router = APIRouter(tags=["health"])


def get_health_service(
    supabase: Client = Depends(get_supabase),
    admin_client: Client = Depends(get_service_supabase),
) -> HealthService:
    return HealthService(supabase, admin_client)


@router.get("/health")
async def health():
    """Liveness: always 200 while the process serves requests"""
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def ready(service: HealthService = Depends(get_health_service)):
    """Readiness probe: database, auth and storage. 503 when unhealthy."""
    report = service.readiness()
    return JSONResponse(status_code=503 if report["status"] == UNHEALTHY else 200, content=report)

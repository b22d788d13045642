import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from supabase import Client

from app.config.settings import settings

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthService:
    """
    Readiness probes against the Supabase services the API depends on.

    A failing database or auth probe makes the service unhealthy; a failing
    storage probe only degrades it (avatar uploads are unavailable).
    """

    def __init__(self, supabase: Client, admin_client: Client):
        self.supabase = supabase
        self.admin_client = admin_client

    def _probe(self, name: str, check: Callable[[], Any], failure_status: str) -> Dict[str, Any]:
        started = time.monotonic()
        status = {"status": HEALTHY, "last_check": _now_iso()}
        try:
            check()
        except Exception as e:
            logger.warning("Readiness probe %s failed: %s", name, e)
            status.update(status=failure_status, error=str(e) or type(e).__name__)
        status["response_time_ms"] = round((time.monotonic() - started) * 1000, 2)
        return status

    def check_database(self) -> Dict[str, Any]:
        return self._probe(
            "database",
            lambda: self.supabase.table("workspaces").select("id").limit(1).execute(),
            UNHEALTHY,
        )

    def check_auth(self) -> Dict[str, Any]:
        return self._probe(
            "auth",
            lambda: self.admin_client.auth.admin.list_users(page=1, per_page=1),
            UNHEALTHY,
        )

    def check_storage(self) -> Dict[str, Any]:
        return self._probe("storage", lambda: self.admin_client.storage.list_buckets(), DEGRADED)

    def readiness(self) -> Dict[str, Any]:
        started = time.monotonic()
        services = {
            "database": self.check_database(),
            "auth": self.check_auth(),
            "storage": self.check_storage(),
        }
        statuses = {service["status"] for service in services.values()}
        if UNHEALTHY in statuses:
            overall = UNHEALTHY
        elif DEGRADED in statuses:
            overall = DEGRADED
        else:
            overall = HEALTHY
        return {
            "status": overall,
            "timestamp": _now_iso(),
            "version": settings.app_version,
            "environment": settings.environment,
            "services": services,
            "response_time_ms": round((time.monotonic() - started) * 1000, 2),
        }

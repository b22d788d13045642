"""
Security event (audit) logging.

Every access and mutation produces one SecurityEvent. Logging is fire and
forget: the structured line goes to the `app.security` logger immediately and
the row is written to the security_events table on a worker thread. Nothing in
this module raises into a request.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog
from pydantic import BaseModel, Field

from app.config.settings import settings

logger = logging.getLogger(__name__)
security_logger = structlog.get_logger("app.security")

_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class SecurityEvent(BaseModel):
    action: str
    user_id: Optional[str] = None
    workspace_id: Optional[str] = None
    resource: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SecurityEventLogger:
    def __init__(
        self,
        client_factory: Optional[Callable[[], Any]] = None,
        persist: bool = False,
        table: str = "security_events",
        executor: Optional[Executor] = None,
    ):
        self._client_factory = client_factory
        self.persist = persist and client_factory is not None
        self.table = table
        self._executor = executor

    def log(self, event: SecurityEvent, severity: str = "info") -> None:
        try:
            security_logger.log(
                _LEVELS.get(severity, logging.INFO),
                "security_event",
                type="SECURITY",
                severity=severity,
                occurred_at=event.timestamp.isoformat(),
                **event.model_dump(mode="json", exclude={"timestamp"}, exclude_none=True),
            )
            if self.persist:
                self._get_executor().submit(self._write, event, severity)
        except Exception as e:
            logger.warning("Failed to record security event %s: %s", event.action, e)

    @contextmanager
    def on_failure(self, context, action: str, **metadata):
        """Log `action` with the error message if the block raises, then re-raise."""
        try:
            yield
        except Exception as e:
            self.log(
                context.event(action, metadata={"error": str(e) or type(e).__name__, **metadata}),
                "error",
            )
            mark_audited(e)
            raise

    def _write(self, event: SecurityEvent, severity: str) -> None:
        try:
            row = event.model_dump(mode="json")
            row["created_at"] = row.pop("timestamp")
            row["severity"] = severity
            self._client_factory().table(self.table).insert(row).execute()
        except Exception as e:
            logger.warning("Security event sink unavailable (%s): %s", event.action, e)

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="audit")
        return self._executor


def mark_audited(exc: BaseException) -> None:
    try:
        exc._audited = True
    except AttributeError:
        pass


def is_audited(exc: BaseException) -> bool:
    return getattr(exc, "_audited", False)


def _build_default_logger() -> SecurityEventLogger:
    from app.database.supabase_client import SupabaseClient

    return SecurityEventLogger(
        client_factory=SupabaseClient.get_service_client,
        persist=settings.audit_persist_events,
        table=settings.audit_table,
    )


audit_logger = _build_default_logger()


def get_audit_logger() -> SecurityEventLogger:
    return audit_logger

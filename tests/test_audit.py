import json
import logging
from concurrent.futures import Executor, Future

import pytest

from app.core.audit import SecurityEvent, SecurityEventLogger, is_audited
from app.core.context import RequestMeta
from app.core.logging import build_formatter
from tests.fakes import FakeSupabase


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


def _security_lines(caplog):
    return [
        record.msg
        for record in caplog.records
        if record.name == "app.security"
    ]


class TestSecurityEventLogger:
    def setup_method(self):
        self.meta = RequestMeta(path="/api/eod", ip="203.0.113.7", user_agent="pytest")

    def test_emits_structured_line(self, caplog):
        caplog.set_level(logging.INFO, logger="app.security")
        SecurityEventLogger().log(self.meta.event("EOD_REPORTS_ACCESSED", user_id="u1", workspace_id="w1"))

        [entry] = _security_lines(caplog)
        assert entry["action"] == "EOD_REPORTS_ACCESSED"
        assert entry["type"] == "SECURITY"
        assert entry["level"] == "info"
        assert entry["event"] == "security_event"
        assert entry["user_id"] == "u1"
        assert entry["workspace_id"] == "w1"
        assert entry["resource"] == "/api/eod"
        assert entry["ip"] == "203.0.113.7"

    def test_severity_maps_to_log_level(self, caplog):
        caplog.set_level(logging.INFO, logger="app.security")
        SecurityEventLogger().log(self.meta.event("ROLE_ACCESS_DENIED"), "warn")
        assert caplog.records[-1].levelno == logging.WARNING

    def test_persists_row(self):
        fake = FakeSupabase()
        audit = SecurityEventLogger(lambda: fake, persist=True, executor=InlineExecutor())
        audit.log(self.meta.event("LOGIN_SUCCESS", user_id="u1"), "info")

        [row] = fake.rows("security_events")
        assert row["action"] == "LOGIN_SUCCESS"
        assert row["severity"] == "info"
        assert row["user_id"] == "u1"
        assert "created_at" in row

    def test_sink_failure_is_swallowed(self):
        fake = FakeSupabase()
        fake.fail("security_events", "insert")
        audit = SecurityEventLogger(lambda: fake, persist=True, executor=InlineExecutor())
        audit.log(self.meta.event("LOGIN_SUCCESS"))
        assert fake.rows("security_events") == []

    def test_no_persistence_without_client(self):
        assert SecurityEventLogger(persist=True).persist is False

    def test_on_failure_logs_and_reraises(self, caplog):
        caplog.set_level(logging.INFO, logger="app.security")
        audit = SecurityEventLogger()
        with pytest.raises(RuntimeError) as info:
            with audit.on_failure(self.meta, "EOD_REPORT_CREATE_ERROR", date="2024-01-15"):
                raise RuntimeError("database down")

        [entry] = _security_lines(caplog)
        assert entry["action"] == "EOD_REPORT_CREATE_ERROR"
        assert entry["level"] == "error"
        assert entry["metadata"] == {"error": "database down", "date": "2024-01-15"}
        assert is_audited(info.value)

    def test_on_failure_silent_on_success(self, caplog):
        caplog.set_level(logging.INFO, logger="app.security")
        with SecurityEventLogger().on_failure(self.meta, "X_ERROR"):
            pass
        assert _security_lines(caplog) == []

    def test_event_timestamp_is_aware(self):
        assert SecurityEvent(action="X").timestamp.tzinfo is not None


class TestLogRendering:
    def _record(self, message, *args):
        return logging.LogRecord("app.modules.eod.service", logging.ERROR, __file__, 1, message, args, None)

    def test_json_lines_carry_timestamp_level_and_logger(self):
        line = build_formatter("json").format(self._record("Failed to fetch %s", "EOD reports"))
        entry = json.loads(line)
        assert entry["event"] == "Failed to fetch EOD reports"
        assert entry["level"] == "error"
        assert entry["logger"] == "app.modules.eod.service"
        assert entry["timestamp"].endswith("Z")

    def test_text_format_is_not_json(self):
        line = build_formatter("text").format(self._record("Application startup"))
        assert "Application startup" in line
        assert not line.startswith("{")

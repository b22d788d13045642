import logging

import pytest

from app.config.settings import settings
from app.core.validation import format_errors, sanitize_input, sanitize_payload


class TestSanitization:
    def test_escapes_markup_and_trims(self):
        assert sanitize_input("  <script>alert('x')</script> ") == "&lt;script&gt;alert(&#x27;x&#x27;)&lt;/script&gt;"

    def test_payload_is_sanitized_recursively(self):
        payload = {"notes": " <b>hi</b>", "tags": ["<i>a</i>"], "nested": {"x": "\"q\""}, "count": 3}
        assert sanitize_payload(payload) == {
            "notes": "&lt;b&gt;hi&lt;/b&gt;",
            "tags": ["&lt;i&gt;a&lt;/i&gt;"],
            "nested": {"x": "&quot;q&quot;"},
            "count": 3,
        }

    def test_format_errors_drops_location_prefix(self):
        errors = [
            {"loc": ("body", "settings", "workingDays", 0), "msg": "too big"},
            {"loc": ("query", "period"), "msg": "bad"},
        ]
        assert format_errors(errors) == [
            {"field": "settings.workingDays.0", "message": "too big"},
            {"field": "period", "message": "bad"},
        ]


class TestErrorEnvelope:
    @pytest.mark.asyncio
    async def test_validation_failure_is_audited(self, client, member, caplog):
        caplog.set_level(logging.INFO, logger="app.security")
        await client.post("/api/eod", headers=member.headers, json={"date": "not-a-date"})
        actions = [record.msg["action"] for record in caplog.records if record.name == "app.security"]
        assert "VALIDATION_FAILED" in actions

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, client, member):
        response = await client.post(
            "/api/eod", headers={**member.headers, "Content-Type": "application/json"}, content=b"{oops",
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid input data"

    @pytest.mark.asyncio
    async def test_server_error_message_hidden_in_production(self, client, monkeypatch, fake_supabase, member):
        monkeypatch.setattr(settings, "environment", "production")
        fake_supabase.fail("eod_reports", "select")
        response = await client.get("/api/eod", headers=member.headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}

    @pytest.mark.asyncio
    async def test_server_error_message_shown_outside_production(self, client, fake_supabase, member):
        fake_supabase.fail("eod_reports", "select")
        response = await client.get("/api/eod", headers=member.headers)
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch EOD reports"

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_envelope(self, client):
        response = await client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

from datetime import date, timedelta

import pytest

from app.core.context import AuthContext, Membership, RequestMeta
from app.core.roles import Role
from app.modules.eod.schemas import EODReportCreate, Period
from app.modules.eod.service import EODService, months_back, period_start
from tests.fakes import FakeAPIError

REPORT = {
    "date": "2024-01-15",
    "callsMade": 42,
    "appointments": 5,
    "sales": 2,
    "revenue": 1500.5,
    "notes": "Solid day",
    "mood": "good",
}


def add_report(fake, member, report_date, **values):
    return fake.add_row(
        "eod_reports", user_id=member.user_id, workspace_id=member.workspace_id,
        report_date=report_date, calls_made=values.pop("calls_made", 10), appointments=1,
        sales=0, revenue=0, **values,
    )


class TestDateHelpers:
    def test_months_back_clamps_to_month_end(self):
        assert months_back(date(2024, 3, 31), 1) == date(2024, 2, 29)
        assert months_back(date(2023, 5, 31), 3) == date(2023, 2, 28)

    def test_months_back_crosses_year(self):
        assert months_back(date(2024, 1, 15), 1) == date(2023, 12, 15)

    def test_period_start(self):
        today = date(2024, 5, 20)
        assert period_start(Period.WEEK, today) == date(2024, 5, 13)
        assert period_start(Period.MONTH, today) == date(2024, 4, 20)
        assert period_start(Period.QUARTER, today) == date(2024, 2, 20)


class TestSubmitReport:
    @pytest.mark.asyncio
    async def test_first_submission_creates(self, client, fake_supabase, member):
        response = await client.post("/api/eod", headers=member.headers, json=REPORT)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "EOD report submitted successfully"
        assert body["data"]["date"] == "2024-01-15"
        assert body["data"]["callsMade"] == 42
        assert body["data"]["user"]["email"] == member.email
        [row] = fake_supabase.rows("eod_reports")
        assert row["workspace_id"] == member.workspace_id
        assert row["user_id"] == member.user_id

    @pytest.mark.asyncio
    async def test_resubmission_updates_same_row(self, client, fake_supabase, member):
        first = await client.post("/api/eod", headers=member.headers, json=REPORT)
        second = await client.post("/api/eod", headers=member.headers, json={**REPORT, "callsMade": 50})
        assert second.status_code == 200
        assert second.json()["message"] == "EOD report updated successfully"
        assert second.json()["data"]["id"] == first.json()["data"]["id"]
        assert second.json()["data"]["callsMade"] == 50
        assert len(fake_supabase.rows("eod_reports")) == 1

    def test_concurrent_insert_falls_back_to_update(self, monkeypatch, fake_supabase, member):
        context = AuthContext(
            user={"id": member.user_id, "email": member.email},
            meta=RequestMeta(path="/api/eod"),
            member=Membership(member.membership_id, member.user_id, member.workspace_id, Role.MEMBER, True),
        )
        existing = add_report(fake_supabase, member, "2024-01-15")
        lookups = iter([None, {"id": existing["id"]}])
        # The pre-insert lookup misses the row a concurrent request just wrote
        monkeypatch.setattr("app.modules.eod.service.first_row", lambda query, message: next(lookups))

        report, created = EODService(fake_supabase).submit_report(
            context, EODReportCreate.model_validate({**REPORT, "callsMade": 7})
        )
        assert created is False
        assert report.id == existing["id"]
        assert report.calls_made == 7
        assert len(fake_supabase.rows("eod_reports")) == 1

    @pytest.mark.asyncio
    async def test_other_insert_failure_is_500(self, client, fake_supabase, member):
        fake_supabase.fail("eod_reports", "insert", FakeAPIError("connection reset"))
        response = await client.post("/api/eod", headers=member.headers, json=REPORT)
        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_validation_errors_are_itemized(self, client, member):
        response = await client.post(
            "/api/eod", headers=member.headers,
            json={**REPORT, "callsMade": -1, "mood": "ecstatic", "notes": "x" * 1001},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {item["field"] for item in body["details"]["validation"]}
        assert fields == {"callsMade", "mood", "notes"}

    @pytest.mark.asyncio
    async def test_missing_date_is_rejected(self, client, member):
        payload = {key: value for key, value in REPORT.items() if key != "date"}
        response = await client.post("/api/eod", headers=member.headers, json=payload)
        assert response.status_code == 400
        assert response.json()["details"]["validation"][0]["field"] == "date"

    @pytest.mark.asyncio
    async def test_text_is_sanitized(self, client, fake_supabase, member):
        await client.post("/api/eod", headers=member.headers, json={**REPORT, "wins": "  <b>closed</b> "})
        assert fake_supabase.rows("eod_reports")[0]["wins"] == "&lt;b&gt;closed&lt;/b&gt;"


class TestListReports:
    @pytest.mark.asyncio
    async def test_member_sees_only_own_reports(self, client, fake_supabase, member, admin):
        add_report(fake_supabase, member, "2024-01-15")
        add_report(fake_supabase, admin, "2024-01-15")

        response = await client.get(
            "/api/eod", headers=member.headers, params={"userId": admin.user_id}
        )
        reports = response.json()["data"]["reports"]
        assert [report["user"]["id"] for report in reports] == [member.user_id]

    @pytest.mark.asyncio
    async def test_admin_sees_workspace_and_filters_by_user(self, client, fake_supabase, member, admin):
        add_report(fake_supabase, member, "2024-01-15")
        add_report(fake_supabase, admin, "2024-01-16")

        everyone = await client.get("/api/eod", headers=admin.headers)
        assert everyone.json()["data"]["pagination"]["total"] == 2

        filtered = await client.get("/api/eod", headers=admin.headers, params={"userId": member.user_id})
        assert [r["user"]["id"] for r in filtered.json()["data"]["reports"]] == [member.user_id]

    @pytest.mark.asyncio
    async def test_other_workspaces_are_invisible(self, client, fake_supabase, seed, owner):
        stranger = seed.member(seed.workspace("Other Co"), "owner")
        add_report(fake_supabase, stranger, "2024-01-15")
        response = await client.get("/api/eod", headers=owner.headers)
        assert response.json()["data"]["reports"] == []

    @pytest.mark.asyncio
    async def test_date_range_and_sorting(self, client, fake_supabase, member):
        for day in ("2024-01-10", "2024-01-15", "2024-01-20", "2024-02-01"):
            add_report(fake_supabase, member, day)

        response = await client.get("/api/eod", headers=member.headers, params={
            "startDate": "2024-01-12", "endDate": "2024-01-31", "sortOrder": "desc",
        })
        dates = [report["date"] for report in response.json()["data"]["reports"]]
        assert dates == ["2024-01-20", "2024-01-15"]

    @pytest.mark.asyncio
    async def test_period_filter(self, client, fake_supabase, member):
        today = date.today()
        add_report(fake_supabase, member, (today - timedelta(days=2)).isoformat())
        add_report(fake_supabase, member, (today - timedelta(days=20)).isoformat())
        add_report(fake_supabase, member, (today - timedelta(days=200)).isoformat())

        week = await client.get("/api/eod", headers=member.headers, params={"period": "week"})
        quarter = await client.get("/api/eod", headers=member.headers, params={"period": "quarter"})
        assert week.json()["data"]["pagination"]["total"] == 1
        assert quarter.json()["data"]["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_pagination(self, client, fake_supabase, member):
        for day in range(1, 26):
            add_report(fake_supabase, member, f"2024-03-{day:02d}")
        response = await client.get("/api/eod", headers=member.headers, params={"page": 2, "limit": 10})
        data = response.json()["data"]
        assert data["pagination"] == {"page": 2, "limit": 10, "total": 25, "pages": 3}
        assert data["reports"][0]["date"] == "2024-03-11"

    @pytest.mark.asyncio
    async def test_bad_period_is_400(self, client, member):
        response = await client.get("/api/eod", headers=member.headers, params={"period": "year"})
        assert response.status_code == 400


class TestSingleReport:
    @pytest.mark.asyncio
    async def test_member_cannot_read_others_report(self, client, fake_supabase, member, admin):
        report = add_report(fake_supabase, admin, "2024-01-15")
        response = await client.get(f"/api/eod/{report['id']}", headers=member.headers)
        assert response.status_code == 404
        assert response.json()["error"] == "EOD report not found or access denied"

    @pytest.mark.asyncio
    async def test_admin_reads_members_report(self, client, fake_supabase, member, admin):
        report = add_report(fake_supabase, member, "2024-01-15")
        response = await client.get(f"/api/eod/{report['id']}", headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == member.user_id

    @pytest.mark.asyncio
    async def test_update_keeps_date(self, client, fake_supabase, member):
        report = add_report(fake_supabase, member, "2024-01-15")
        response = await client.put(
            f"/api/eod/{report['id']}", headers=member.headers,
            json={"sales": 3, "date": "2024-02-01"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["sales"] == 3
        assert response.json()["data"]["date"] == "2024-01-15"
        assert fake_supabase.rows("eod_reports")[0]["calls_made"] == 10

    @pytest.mark.asyncio
    async def test_null_counts_are_rejected(self, client, fake_supabase, member):
        report = add_report(fake_supabase, member, "2024-01-15")
        response = await client.put(f"/api/eod/{report['id']}", headers=member.headers, json={"callsMade": None})
        assert response.status_code == 400
        assert response.json()["details"]["validation"][0]["field"] == "callsMade"
        assert fake_supabase.rows("eod_reports")[0]["calls_made"] == 10

    @pytest.mark.asyncio
    async def test_update_other_members_report_is_404(self, client, fake_supabase, seed, workspace, member):
        colleague = seed.member(workspace, "member")
        report = add_report(fake_supabase, colleague, "2024-01-15")
        response = await client.put(f"/api/eod/{report['id']}", headers=member.headers, json={"sales": 9})
        assert response.status_code == 404
        assert fake_supabase.rows("eod_reports")[0]["sales"] == 0

    @pytest.mark.asyncio
    async def test_delete_requires_admin(self, client, fake_supabase, member, admin):
        report = add_report(fake_supabase, member, "2024-01-15")
        denied = await client.delete(f"/api/eod/{report['id']}", headers=member.headers)
        assert denied.status_code == 403

        deleted = await client.delete(f"/api/eod/{report['id']}", headers=admin.headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True, "message": "EOD report deleted successfully"}
        assert fake_supabase.rows("eod_reports") == []

    @pytest.mark.asyncio
    async def test_delete_missing_is_404(self, client, admin):
        response = await client.delete("/api/eod/does-not-exist", headers=admin.headers)
        assert response.status_code == 404

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from supabase import Client

from app.core.context import AuthContext
from app.core.dependencies import Pagination, count_of
from app.core.exceptions import NotFoundError
from app.database.supabase_client import execute, first_row
from app.modules.eod.schemas import (
    EODReportCreate, EODReportUpdate, EODReportResponse, ReportAuthor, Period
)

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "report_date", "created_at", "updated_at", "calls_made",
    "appointments", "sales", "revenue",
}
NOT_FOUND_MESSAGE = "EOD report not found or access denied"


def months_back(day: date, months: int) -> date:
    """Same day `months` earlier, clamped to the end of a shorter month."""
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def period_start(period: Period, today: Optional[date] = None) -> date:
    today = today or datetime.now(timezone.utc).date()
    if period == Period.WEEK:
        return today - timedelta(days=7)
    if period == Period.MONTH:
        return months_back(today, 1)
    return months_back(today, 3)


def _is_unique_violation(exc: BaseException) -> bool:
    while exc is not None:
        if getattr(exc, "code", None) == "23505":
            return True
        exc = exc.__cause__
    return False


@dataclass
class EODFilters:
    user_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    period: Optional[Period] = None


class EODService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _scoped(self, context: AuthContext, columns: str = "*"):
        """Query limited to the caller's workspace, and to their own rows below admin."""
        query = self.supabase.table("eod_reports")\
            .select(columns)\
            .eq("workspace_id", context.workspace_id)
        if not context.member.is_manager:
            query = query.eq("user_id", context.user_id)
        return query

    def _authors(self, user_ids: List[str]) -> Dict[str, dict]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        result = execute(
            self.supabase.table("user_profiles").select("id, email, full_name").in_("id", ids),
            "Failed to fetch report authors",
        )
        return {row["id"]: row for row in result.data or []}

    def _to_response(self, row: dict, authors: Dict[str, dict]) -> EODReportResponse:
        profile = authors.get(row.get("user_id")) or {}
        email = profile.get("email")
        author = ReportAuthor(
            id=row.get("user_id"),
            email=email,
            full_name=profile.get("full_name") or email,
        )
        return EODReportResponse.model_validate({**row, "user": author})

    def list_reports(
        self,
        context: AuthContext,
        filters: EODFilters,
        pagination: Pagination,
    ) -> Tuple[List[EODReportResponse], int]:
        """Reports visible to the caller; `filters.user_id` only applies to admins and owners."""
        query = self.supabase.table("eod_reports")\
            .select("*", count="exact")\
            .eq("workspace_id", context.workspace_id)
        if not context.member.is_manager:
            query = query.eq("user_id", context.user_id)
        elif filters.user_id:
            query = query.eq("user_id", filters.user_id)

        if filters.start_date:
            query = query.gte("report_date", filters.start_date.isoformat())
        if filters.end_date:
            query = query.lte("report_date", filters.end_date.isoformat())
        if filters.period:
            query = query.gte("report_date", period_start(filters.period).isoformat())

        result = execute(
            query.order(pagination.sort_column(SORTABLE_COLUMNS, "report_date"), desc=pagination.descending)
                 .range(pagination.start, pagination.end),
            "Failed to fetch EOD reports",
        )
        rows = result.data or []
        authors = self._authors([row.get("user_id") for row in rows])
        return [self._to_response(row, authors) for row in rows], count_of(result)

    def submit_report(self, context: AuthContext, data: EODReportCreate) -> Tuple[EODReportResponse, bool]:
        """
        Create the caller's report for `data.report_date`, or update it when one
        already exists for that date. Returns (report, created).
        """
        fields = data.model_dump(mode="json", exclude={"report_date"})
        report_date = data.report_date.isoformat()
        existing = first_row(
            self.supabase.table("eod_reports")
                .select("id")
                .eq("user_id", context.user_id)
                .eq("workspace_id", context.workspace_id)
                .eq("report_date", report_date),
            "Failed to look up EOD report",
        )
        if existing:
            return self._update_row(context, existing["id"], fields), False

        try:
            result = execute(
                self.supabase.table("eod_reports").insert({
                    "user_id": context.user_id,
                    "workspace_id": context.workspace_id,
                    "report_date": report_date,
                    **fields,
                }),
                "Failed to create EOD report",
            )
        except Exception as e:
            if not _is_unique_violation(e):
                raise
            # A concurrent submission for the same date won the insert
            logger.info("EOD report for %s on %s already exists, updating", context.user_id, report_date)
            existing = first_row(
                self.supabase.table("eod_reports")
                    .select("id")
                    .eq("user_id", context.user_id)
                    .eq("workspace_id", context.workspace_id)
                    .eq("report_date", report_date),
                "Failed to look up EOD report",
            )
            if not existing:
                raise
            return self._update_row(context, existing["id"], fields), False

        row = result.data[0]
        return self._to_response(row, self._authors([row["user_id"]])), True

    def _update_row(self, context: AuthContext, report_id: str, fields: dict) -> EODReportResponse:
        result = execute(
            self.supabase.table("eod_reports")
                .update({**fields, "updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", report_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to update EOD report",
        )
        if not result.data:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        row = result.data[0]
        return self._to_response(row, self._authors([row["user_id"]]))

    def get_report(self, context: AuthContext, report_id: str) -> EODReportResponse:
        row = first_row(self._scoped(context).eq("id", report_id), "Failed to fetch EOD report")
        if not row:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return self._to_response(row, self._authors([row["user_id"]]))

    def update_report(self, context: AuthContext, report_id: str, data: EODReportUpdate) -> Tuple[EODReportResponse, dict]:
        """Apply the provided fields. Returns (report, the row as it was before)."""
        existing = first_row(
            self._scoped(context, "id, user_id, report_date").eq("id", report_id),
            "Failed to fetch EOD report",
        )
        if not existing:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        fields = data.model_dump(mode="json", exclude_unset=True)
        return self._update_row(context, report_id, fields), existing

    def delete_report(self, context: AuthContext, report_id: str) -> dict:
        existing = first_row(
            self.supabase.table("eod_reports")
                .select("id, user_id, report_date")
                .eq("id", report_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to fetch EOD report",
        )
        if not existing:
            raise NotFoundError("EOD report not found")
        execute(
            self.supabase.table("eod_reports")
                .delete()
                .eq("id", report_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to delete EOD report",
        )
        return existing

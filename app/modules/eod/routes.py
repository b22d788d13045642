from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import AuthContext
from app.core.dependencies import Pagination, get_pagination, require_permission
from app.core.responses import success_response
from app.core.validation import validated_body
from app.database.supabase_client import get_supabase
from app.modules.eod.schemas import EODReportCreate, EODReportUpdate, Period
from app.modules.eod.service import EODFilters, EODService

router = APIRouter(prefix="/eod", tags=["eod"])


def get_eod_service(supabase: Client = Depends(get_supabase)) -> EODService:
    return EODService(supabase)


@router.get("")
async def list_reports(
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    period: Optional[Period] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    context: AuthContext = Depends(require_permission("eod:read")),
    service: EODService = Depends(get_eod_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """List EOD reports. Members and viewers only see their own; `userId` is honoured for admins and owners."""
    filters = EODFilters(user_id=user_id, start_date=start_date, end_date=end_date, period=period)
    with audit.on_failure(context, "EOD_REPORTS_ACCESS_ERROR"):
        reports, total = service.list_reports(context, filters, pagination)
    audit.log(context.event("EOD_REPORTS_ACCESSED", metadata={
        "reportCount": len(reports),
        "filters": {
            "startDate": start_date, "endDate": end_date,
            "userId": user_id, "period": period.value if period else None,
        },
        "role": context.role.value,
    }))
    return success_response({"reports": reports, "pagination": pagination.summary(total)})


@router.post("")
async def submit_report(
    context: AuthContext = Depends(require_permission("eod:create")),
    report_data: EODReportCreate = Depends(validated_body(EODReportCreate)),
    service: EODService = Depends(get_eod_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Submit the caller's report for a date; resubmitting the same date updates it."""
    with audit.on_failure(context, "EOD_REPORT_CREATE_ERROR", date=report_data.report_date.isoformat()):
        report, created = service.submit_report(context, report_data)
    audit.log(context.event(
        "EOD_REPORT_CREATED" if created else "EOD_REPORT_UPDATED",
        metadata={"reportId": report.id, "date": report.report_date.isoformat(), "revenue": report.revenue},
    ))
    if created:
        return success_response(report, "EOD report submitted successfully", status_code=201)
    return success_response(report, "EOD report updated successfully")


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    context: AuthContext = Depends(require_permission("eod:read")),
    service: EODService = Depends(get_eod_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "EOD_REPORT_ACCESS_ERROR"):
        report = service.get_report(context, report_id)
    audit.log(context.event("EOD_REPORT_ACCESSED", metadata={
        "reportId": report_id,
        "reportDate": report.report_date.isoformat(),
        "reportOwner": report.user.id,
    }))
    return success_response(report)


@router.put("/{report_id}")
async def update_report(
    report_id: str,
    context: AuthContext = Depends(require_permission("eod:update")),
    update_data: EODReportUpdate = Depends(validated_body(EODReportUpdate)),
    service: EODService = Depends(get_eod_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Partial update of a report the caller may see"""
    with audit.on_failure(context, "EOD_REPORT_UPDATE_ERROR"):
        report, previous = service.update_report(context, report_id, update_data)
    audit.log(context.event("EOD_REPORT_UPDATED", metadata={
        "reportId": report_id,
        "reportDate": previous.get("report_date"),
        "changes": sorted(update_data.model_fields_set),
        "reportOwner": previous.get("user_id"),
    }))
    return success_response(report, "EOD report updated successfully")


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    context: AuthContext = Depends(require_permission("eod:delete")),
    service: EODService = Depends(get_eod_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "EOD_REPORT_DELETE_ERROR"):
        existing = service.delete_report(context, report_id)
    audit.log(context.event("EOD_REPORT_DELETED", metadata={
        "reportId": report_id,
        "reportDate": existing.get("report_date"),
        "reportOwner": existing.get("user_id"),
    }))
    return success_response(message="EOD report deleted successfully")

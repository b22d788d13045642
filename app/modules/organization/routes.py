from fastapi import APIRouter, Depends
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import AuthContext
from app.core.dependencies import require_permission
from app.core.responses import success_response
from app.core.validation import validated_body
from app.database.supabase_client import get_supabase
from app.modules.organization.schemas import WorkspaceUpdate
from app.modules.organization.service import OrganizationService

router = APIRouter(prefix="/organization", tags=["organization"])


def get_organization_service(supabase: Client = Depends(get_supabase)) -> OrganizationService:
    return OrganizationService(supabase)


@router.get("")
async def get_organization(
    context: AuthContext = Depends(require_permission("organization:read")),
    service: OrganizationService = Depends(get_organization_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "ORGANIZATION_ACCESS_ERROR"):
        organization = service.get_organization(context)
    audit.log(context.event("ORGANIZATION_ACCESSED", metadata={"role": context.role.value}))
    return success_response(organization)


@router.put("")
async def update_organization(
    context: AuthContext = Depends(require_permission("organization:update")),
    workspace_data: WorkspaceUpdate = Depends(validated_body(WorkspaceUpdate)),
    service: OrganizationService = Depends(get_organization_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Update workspace name, description and settings (admins and owners)"""
    with audit.on_failure(context, "ORGANIZATION_UPDATE_ERROR"):
        organization = service.update_organization(context, workspace_data)
    audit.log(context.event("ORGANIZATION_UPDATED", metadata={
        "updatedFields": sorted(workspace_data.model_fields_set),
    }))
    return success_response({"organization": organization}, "Organization updated successfully")

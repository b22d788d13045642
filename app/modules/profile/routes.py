from fastapi import APIRouter, Depends
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import UserContext
from app.core.dependencies import get_auth_service, get_current_user, get_optional_workspace_context
from app.core.responses import success_response
from app.core.validation import validated_body
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.profile.schemas import ProfileUpdate
from app.modules.profile.service import ProfileService

router = APIRouter(prefix="/profile", tags=["profile"])


def get_profile_service(
    supabase: Client = Depends(get_supabase),
    auth_service: AuthService = Depends(get_auth_service),
) -> ProfileService:
    return ProfileService(supabase, auth_service)


@router.get("")
async def get_profile(
    current: UserContext = Depends(get_optional_workspace_context),
    service: ProfileService = Depends(get_profile_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Current user with workspace context and permissions (for frontend UI)"""
    with audit.on_failure(current, "PROFILE_ACCESS_ERROR"):
        profile = service.get_profile(current)
    audit.log(current.event("PROFILE_ACCESSED"))
    return success_response(profile)


@router.put("")
async def update_profile(
    current: UserContext = Depends(get_current_user),
    profile_data: ProfileUpdate = Depends(validated_body(ProfileUpdate)),
    service: ProfileService = Depends(get_profile_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(current, "PROFILE_UPDATE_ERROR"):
        profile = service.update_profile(current, profile_data)
    audit.log(current.event("PROFILE_UPDATED", metadata={
        "updatedFields": sorted(profile_data.model_fields_set),
    }))
    return success_response(
        {"user": {"id": current.user_id, "email": current.user.get("email")}, "profile": profile},
        "Profile updated successfully",
    )

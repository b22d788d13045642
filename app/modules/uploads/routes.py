from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import UserContext
from app.core.dependencies import get_current_user
from app.core.exceptions import ValidationError
from app.core.responses import success_response
from app.database.supabase_client import get_supabase
from app.modules.uploads.service import AvatarService

router = APIRouter(prefix="/upload", tags=["upload"])


def get_avatar_service(supabase: Client = Depends(get_supabase)) -> AvatarService:
    return AvatarService(supabase)


@router.post("/avatar")
async def upload_avatar(
    current: UserContext = Depends(get_current_user),
    avatar: Optional[UploadFile] = File(None),
    service: AvatarService = Depends(get_avatar_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """
    Upload a profile picture (multipart field `avatar`).
    JPEG, PNG, WebP or GIF up to 5MB; replaces the current avatar.
    """
    with audit.on_failure(current, "AVATAR_UPLOAD_ERROR"):
        if avatar is None:
            raise ValidationError("No file provided")
        content = await avatar.read()
        result = service.upload_avatar(current.user, avatar.filename, avatar.content_type, content)
    audit.log(current.event("AVATAR_UPLOADED", metadata={"path": result.path, "size": len(content)}))
    return success_response(result, "Avatar uploaded successfully")


@router.delete("/avatar")
async def delete_avatar(
    current: UserContext = Depends(get_current_user),
    service: AvatarService = Depends(get_avatar_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(current, "AVATAR_DELETE_ERROR"):
        path = service.delete_avatar(current.user)
    audit.log(current.event("AVATAR_DELETED", metadata={"path": path}))
    return success_response(message="Avatar deleted successfully")

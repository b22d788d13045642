from fastapi import APIRouter, Depends
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import AuthContext, UserContext
from app.core.dependencies import Pagination, get_current_user, get_pagination, require_permission
from app.core.responses import success_response
from app.core.validation import validated_body
from app.database.supabase_client import get_supabase
from app.modules.team.schemas import TeamInvite, TeamMemberUpdate
from app.modules.team.service import TeamService

router = APIRouter(prefix="/team", tags=["team"])


def get_team_service(supabase: Client = Depends(get_supabase)) -> TeamService:
    return TeamService(supabase)


@router.get("")
async def list_members(
    pagination: Pagination = Depends(get_pagination),
    context: AuthContext = Depends(require_permission("team:read")),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "TEAM_ACCESS_ERROR"):
        members, total = service.list_members(context, pagination)
    audit.log(context.event("TEAM_MEMBERS_ACCESSED", metadata={"memberCount": len(members)}))
    return success_response({"members": members, "pagination": pagination.summary(total)})


@router.post("")
async def invite_member(
    context: AuthContext = Depends(require_permission("team:invite")),
    invite: TeamInvite = Depends(validated_body(TeamInvite)),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Invite someone to the workspace (admins and owners; only owners may invite owners)"""
    with audit.on_failure(context, "TEAM_INVITE_ERROR", invitedEmail=invite.email):
        invitation = service.invite_member(context, invite)
    audit.log(context.event("TEAM_MEMBER_INVITED", metadata={
        "invitedEmail": invitation.email,
        "role": invitation.role.value,
        "invitationId": invitation.id,
    }))
    return success_response(invitation, "Team member invitation created successfully", status_code=201)


@router.post("/invitations/{token}/accept")
async def accept_invitation(
    token: str,
    current: UserContext = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Accept an invitation addressed to the caller's email"""
    with audit.on_failure(current, "TEAM_INVITE_ACCEPT_ERROR"):
        member = service.accept_invitation(current, token)
    audit.log(current.event("TEAM_INVITE_ACCEPTED", metadata={
        "memberId": member.id, "role": member.role.value,
    }))
    return success_response(member, "Invitation accepted")


@router.get("/{member_id}")
async def get_member(
    member_id: str,
    context: AuthContext = Depends(require_permission("team:read")),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "TEAM_MEMBER_ACCESS_ERROR"):
        member = service.get_member(context, member_id)
    audit.log(context.event("TEAM_MEMBER_ACCESSED", metadata={"targetMemberId": member_id}))
    return success_response(member)


@router.put("/{member_id}")
async def update_member(
    member_id: str,
    context: AuthContext = Depends(require_permission("team:update")),
    update: TeamMemberUpdate = Depends(validated_body(TeamMemberUpdate)),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "TEAM_MEMBER_UPDATE_ERROR", targetMemberId=member_id):
        member = service.update_member(context, member_id, update)
    audit.log(context.event("TEAM_MEMBER_UPDATED", metadata={
        "targetMemberId": member_id,
        "changes": update.model_dump(mode="json", exclude_unset=True),
        "newRole": member.role.value,
    }))
    return success_response(member, "Team member updated successfully")


@router.delete("/{member_id}")
async def remove_member(
    member_id: str,
    context: AuthContext = Depends(require_permission("team:remove")),
    service: TeamService = Depends(get_team_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Deactivate a member (owners only)"""
    with audit.on_failure(context, "TEAM_MEMBER_REMOVE_ERROR", targetMemberId=member_id):
        service.remove_member(context, member_id)
    audit.log(context.event("TEAM_MEMBER_REMOVED", metadata={"targetMemberId": member_id}))
    return success_response(message="Team member removed successfully")

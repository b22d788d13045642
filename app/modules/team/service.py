import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode

from pydantic import TypeAdapter
from supabase import Client

from app.config.settings import settings
from app.core.context import AuthContext, UserContext
from app.core.dependencies import MEMBER_COLUMNS, Pagination, count_of
from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.core.roles import Role
from app.database.supabase_client import execute, first_row
from app.modules.team.schemas import (
    InvitationResponse, TeamInvite, TeamMemberResponse, TeamMemberUpdate
)

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {"created_at", "updated_at", "role", "is_active"}
_DATETIME = TypeAdapter(datetime)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = _DATETIME.validate_python(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class TeamService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _profiles(self, user_ids: List[str]) -> Dict[str, dict]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        result = execute(
            self.supabase.table("user_profiles").select("id, email, full_name").in_("id", ids),
            "Failed to fetch member profiles",
        )
        return {row["id"]: row for row in result.data or []}

    def _to_response(self, row: dict, profiles: Dict[str, dict]) -> TeamMemberResponse:
        profile = profiles.get(row["user_id"]) or {}
        email = profile.get("email")
        return TeamMemberResponse(
            id=row["id"],
            user_id=row["user_id"],
            email=email,
            full_name=profile.get("full_name") or email,
            role=Role.parse(row["role"]),
            is_active=bool(row.get("is_active")),
            joined_at=row.get("created_at"),
        )

    def _find_member(self, context: AuthContext, member_id: str) -> Optional[dict]:
        return first_row(
            self.supabase.table("workspace_members")
                .select(MEMBER_COLUMNS)
                .eq("id", member_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to fetch team member",
        )

    def list_members(self, context: AuthContext, pagination: Pagination) -> Tuple[List[TeamMemberResponse], int]:
        result = execute(
            self.supabase.table("workspace_members")
                .select(MEMBER_COLUMNS, count="exact")
                .eq("workspace_id", context.workspace_id)
                .order(pagination.sort_column(SORTABLE_COLUMNS, "created_at"), desc=pagination.descending)
                .range(pagination.start, pagination.end),
            "Failed to fetch team members",
        )
        rows = result.data or []
        profiles = self._profiles([row["user_id"] for row in rows])
        return [self._to_response(row, profiles) for row in rows], count_of(result)

    def get_member(self, context: AuthContext, member_id: str) -> TeamMemberResponse:
        row = self._find_member(context, member_id)
        if not row:
            raise NotFoundError("Team member not found")
        return self._to_response(row, self._profiles([row["user_id"]]))

    def invite_member(self, context: AuthContext, invite: TeamInvite) -> InvitationResponse:
        """Record a pending invitation and return the link that accepts it."""
        if invite.role == Role.OWNER and context.role != Role.OWNER:
            raise AuthorizationError("Only owners can invite owners")
        email = invite.email.lower()

        profile_ids = [
            row["id"] for row in execute(
                self.supabase.table("user_profiles").select("id").eq("email", email),
                "Failed to look up user",
            ).data or []
        ]
        if profile_ids:
            existing_member = first_row(
                self.supabase.table("workspace_members")
                    .select("id")
                    .eq("workspace_id", context.workspace_id)
                    .eq("is_active", True)
                    .in_("user_id", profile_ids),
                "Failed to check existing membership",
            )
            if existing_member:
                raise ConflictError("User is already a member of this workspace")

        pending = first_row(
            self.supabase.table("workspace_invitations")
                .select("id, expires_at")
                .eq("workspace_id", context.workspace_id)
                .eq("email", email)
                .eq("status", "pending")
                .gte("expires_at", _now().isoformat()),
            "Failed to check existing invitations",
        )
        if pending:
            raise ConflictError("An invitation is already pending for this email")

        token = secrets.token_urlsafe(32)
        expires_at = _now() + timedelta(hours=settings.invitation_ttl_hours)
        result = execute(
            self.supabase.table("workspace_invitations").insert({
                "workspace_id": context.workspace_id,
                "email": email,
                "role": invite.role.value,
                "token": token,
                "invited_by": context.user_id,
                "first_name": invite.first_name,
                "last_name": invite.last_name,
                "custom_message": invite.custom_message,
                "status": "pending",
                "expires_at": expires_at.isoformat(),
            }),
            "Failed to create invitation",
        )
        invite_url = f"{settings.app_url.rstrip('/')}/auth/invite?{urlencode({'token': token})}"
        return InvitationResponse(
            id=(result.data or [{}])[0].get("id"),
            invite_url=invite_url,
            email=email,
            role=invite.role,
            expires_at=expires_at,
        )

    def accept_invitation(self, current: UserContext, token: str) -> TeamMemberResponse:
        """Join the inviting workspace, creating or reactivating the caller's membership."""
        invitation = first_row(
            self.supabase.table("workspace_invitations")
                .select("*")
                .eq("token", token)
                .eq("status", "pending"),
            "Failed to fetch invitation",
        )
        if not invitation:
            raise NotFoundError("Invitation not found")
        if _parse_timestamp(invitation["expires_at"]) < _now():
            raise ValidationError("Invitation has expired", code="INVITATION_EXPIRED")
        if (current.user.get("email") or "").lower() != invitation["email"].lower():
            raise AuthorizationError("Invitation was issued to a different email address")

        workspace_id = invitation["workspace_id"]
        existing = first_row(
            self.supabase.table("workspace_members")
                .select(MEMBER_COLUMNS)
                .eq("workspace_id", workspace_id)
                .eq("user_id", current.user_id),
            "Failed to check existing membership",
        )
        if existing:
            result = execute(
                self.supabase.table("workspace_members")
                    .update({"role": invitation["role"], "is_active": True, "updated_at": _now().isoformat()})
                    .eq("id", existing["id"]),
                "Failed to reactivate membership",
            )
        else:
            result = execute(
                self.supabase.table("workspace_members").insert({
                    "workspace_id": workspace_id,
                    "user_id": current.user_id,
                    "role": invitation["role"],
                    "is_active": True,
                }),
                "Failed to create membership",
            )
        execute(
            self.supabase.table("workspace_invitations")
                .update({"status": "accepted", "accepted_at": _now().isoformat()})
                .eq("id", invitation["id"]),
            "Failed to mark invitation accepted",
        )
        row = result.data[0]
        return self._to_response(row, self._profiles([row["user_id"]]))

    def _active_owner_count(self, workspace_id: str) -> int:
        return count_of(execute(
            self.supabase.table("workspace_members")
                .select("id", count="exact")
                .eq("workspace_id", workspace_id)
                .eq("role", Role.OWNER.value)
                .eq("is_active", True),
            "Failed to count owners",
        ))

    def update_member(self, context: AuthContext, member_id: str, update: TeamMemberUpdate) -> TeamMemberResponse:
        """
        Change a member's role or active flag.

        Callers may not deactivate themselves, and only owners may change their
        own role. Deactivating someone else, granting owner, or touching an
        owner's membership is reserved to owners.
        """
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        is_self = member_id == context.member.id

        if is_self and changes.get("is_active") is False:
            raise ValidationError("You cannot deactivate yourself")
        if is_self and "role" in changes and context.role != Role.OWNER:
            raise AuthorizationError("You cannot change your own role")

        target = self._find_member(context, member_id)
        if not target:
            raise NotFoundError("Team member not found")
        target_role = Role.parse(target["role"])

        if context.role != Role.OWNER:
            if not is_self and changes.get("is_active") is False:
                raise AuthorizationError("Only owners can deactivate members")
            if changes.get("role") == Role.OWNER:
                raise AuthorizationError("Only owners can grant the owner role")
            if target_role == Role.OWNER:
                raise AuthorizationError("Only owners can modify an owner")

        demotes_owner = target_role == Role.OWNER and (
            changes.get("is_active") is False
            or ("role" in changes and changes["role"] != Role.OWNER)
        )
        if demotes_owner and target.get("is_active") and self._active_owner_count(context.workspace_id) <= 1:
            raise ValidationError("A workspace must keep at least one active owner")

        update_data = {"updated_at": _now().isoformat()}
        if "role" in changes:
            update_data["role"] = changes["role"].value
        if "is_active" in changes:
            update_data["is_active"] = changes["is_active"]
        result = execute(
            self.supabase.table("workspace_members")
                .update(update_data)
                .eq("id", member_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to update team member",
        )
        if not result.data:
            raise NotFoundError("Team member not found")
        row = result.data[0]
        return self._to_response(row, self._profiles([row["user_id"]]))

    def remove_member(self, context: AuthContext, member_id: str) -> dict:
        """Deactivate a membership; the row is kept for history."""
        if member_id == context.member.id:
            raise ValidationError("You cannot remove yourself from the workspace")
        target = self._find_member(context, member_id)
        if not target:
            raise NotFoundError("Team member not found")
        execute(
            self.supabase.table("workspace_members")
                .update({"is_active": False, "updated_at": _now().isoformat()})
                .eq("id", member_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to remove team member",
        )
        return target

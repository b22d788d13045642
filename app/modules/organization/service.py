from datetime import datetime, timezone
from typing import Any, Dict

from supabase import Client

from app.core.context import AuthContext
from app.core.dependencies import WORKSPACE_COLUMNS, Pagination
from app.core.exceptions import NotFoundError
from app.database.supabase_client import execute, first_row
from app.modules.organization.schemas import WorkspaceUpdate
from app.modules.team.service import TeamService


class OrganizationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _workspace(self, workspace_id: str) -> Dict[str, Any]:
        row = first_row(
            self.supabase.table("workspaces").select(WORKSPACE_COLUMNS).eq("id", workspace_id),
            "Failed to fetch organization",
        )
        if not row:
            raise NotFoundError("Organization not found")
        return row

    def get_organization(self, context: AuthContext) -> Dict[str, Any]:
        """Workspace details and the caller's place in it; admins and owners also get the member list."""
        team_members = None
        if context.member.is_manager:
            members, _ = TeamService(self.supabase).list_members(
                context, Pagination(page=1, limit=100, sort_by="created_at", sort_order="asc")
            )
            team_members = members
        return {
            "organization": self._workspace(context.workspace_id),
            "context": {
                "workspaceId": context.workspace_id,
                "membershipId": context.member.id,
                "role": context.role.value,
                "isManager": context.member.is_manager,
            },
            "teamMembers": team_members,
        }

    def update_organization(self, context: AuthContext, workspace_data: WorkspaceUpdate) -> Dict[str, Any]:
        update_data: Dict[str, Any] = {
            "name": workspace_data.name,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if "description" in workspace_data.model_fields_set:
            update_data["description"] = workspace_data.description
        if workspace_data.settings is not None:
            current = self._workspace(context.workspace_id).get("settings") or {}
            update_data["settings"] = {
                **current,
                **workspace_data.settings.model_dump(mode="json", by_alias=True, exclude_none=True),
            }
        result = execute(
            self.supabase.table("workspaces").update(update_data).eq("id", context.workspace_id),
            "Failed to update organization",
        )
        if not result.data:
            raise NotFoundError("Organization not found")
        return result.data[0]

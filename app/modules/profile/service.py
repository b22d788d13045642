from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from app.config.permissions_config import get_permissions_for_role
from app.core.context import AuthContext, UserContext
from app.database.supabase_client import execute, first_row
from app.modules.auth.service import AuthService
from app.modules.profile.schemas import ProfileUpdate

PROFILE_COLUMNS = "id, email, first_name, last_name, full_name, phone, timezone, bio, avatar_url, preferences, updated_at"


class ProfileService:
    def __init__(self, supabase: Client, auth_service: Optional[AuthService] = None):
        self.supabase = supabase
        self.auth_service = auth_service or AuthService(supabase)

    def get_profile_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        return first_row(
            self.supabase.table("user_profiles").select(PROFILE_COLUMNS).eq("id", user_id),
            "Failed to fetch profile",
        )

    def get_profile(self, current: UserContext) -> Dict[str, Any]:
        """User, profile, workspace and membership, plus the permission names the role holds."""
        user = current.user
        profile = self.get_profile_row(current.user_id) or {}
        payload = {
            "user": {
                "id": user["id"],
                "email": user.get("email"),
                "email_confirmed_at": user.get("email_confirmed_at"),
                "last_sign_in_at": user.get("last_sign_in_at"),
            },
            "profile": profile or None,
            "workspace": None,
            "membership": None,
            "permissions": [],
        }
        if isinstance(current, AuthContext):
            payload["workspace"] = current.member.workspace
            payload["membership"] = {
                "id": current.member.id,
                "role": current.role.value,
                "is_active": current.member.is_active,
            }
            payload["permissions"] = get_permissions_for_role(current.role)
        return payload

    def update_profile(self, current: UserContext, profile_data: ProfileUpdate) -> Dict[str, Any]:
        full_name = f"{profile_data.first_name} {profile_data.last_name}"
        self.auth_service.update_user_metadata(current.user_id, {
            "full_name": full_name,
            "first_name": profile_data.first_name,
            "last_name": profile_data.last_name,
        })

        fields = profile_data.model_dump(mode="json", exclude_unset=True, exclude={"preferences"})
        if profile_data.preferences is not None:
            existing = (self.get_profile_row(current.user_id) or {}).get("preferences") or {}
            fields["preferences"] = {
                **existing,
                **profile_data.preferences.model_dump(by_alias=True, exclude_none=True),
            }
        result = execute(
            self.supabase.table("user_profiles").upsert({
                **fields,
                "id": current.user_id,
                "email": current.user.get("email"),
                "full_name": full_name,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }),
            "Failed to update profile",
        )
        return (result.data or [{}])[0]

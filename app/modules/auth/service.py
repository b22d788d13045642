import hashlib
import logging
import time
from datetime import datetime, timezone
from supabase import Client
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from app.database.supabase_client import SupabaseClient, execute
from app.core.exceptions import AppError, AuthenticationError, ConflictError, InternalError, ValidationError
from app.core.roles import Role
from app.core.saga import Saga
from typing import Callable, Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


def _cache_user(cache_key: str, user_data: Dict[str, Any], now: float) -> None:
    """Expired entries are dropped before the size cap is applied."""
    if len(_AUTH_USER_CACHE) >= _AUTH_CACHE_MAX_SIZE:
        for key in [key for key, (_, expiry) in _AUTH_USER_CACHE.items() if expiry <= now]:
            del _AUTH_USER_CACHE[key]
    if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
        _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)


class AuthService:
    def __init__(
        self,
        supabase: Client,
        client_factory: Callable[[], Client] = SupabaseClient.new_client,
        admin_client: Optional[Client] = None,
    ):
        self.supabase = supabase
        self._client_factory = client_factory
        self._admin_client = admin_client

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = SupabaseClient.get_service_client()
        return self._admin_client

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """
        Create the auth user, a workspace, its owner membership and the user profile.
        A failed step undoes the earlier ones, including the auth user.
        """
        full_name = f"{register_data.first_name} {register_data.last_name}"
        saga = Saga("registration")
        user = saga.step(
            "create_auth_user",
            lambda: self._sign_up(register_data, full_name),
            lambda created: self._delete_auth_user(created.id),
        )
        workspace = saga.step(
            "create_workspace",
            lambda: execute(
                self.supabase.table("workspaces").insert({
                    "name": register_data.workspace_name,
                    "plan_type": "free",
                    "is_active": True,
                    "settings": {},
                }),
                "Failed to create workspace",
            ).data[0],
            lambda row: self._delete_row("workspaces", row["id"]),
        )
        saga.step(
            "create_membership",
            lambda: execute(
                self.supabase.table("workspace_members").insert({
                    "user_id": user.id,
                    "workspace_id": workspace["id"],
                    "role": Role.OWNER.value,
                    "is_active": True,
                }),
                "Failed to create workspace membership",
            ).data[0],
            lambda row: self._delete_row("workspace_members", row["id"]),
        )
        saga.step(
            "create_profile",
            lambda: execute(
                self.supabase.table("user_profiles").upsert({
                    "id": user.id,
                    "email": register_data.email,
                    "first_name": register_data.first_name,
                    "last_name": register_data.last_name,
                    "full_name": full_name,
                    "phone": register_data.phone,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }),
                "Failed to create user profile",
            ),
        )
        return RegisterResponse(
            user_id=user.id,
            email=user.email or register_data.email,
            workspace_id=workspace["id"],
            message="User registered successfully"
        )

    def _sign_up(self, register_data: RegisterRequest, full_name: str):
        try:
            auth_response = self._client_factory().auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": {
                        "full_name": full_name,
                        "first_name": register_data.first_name,
                        "last_name": register_data.last_name,
                    }
                }
            })
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise ConflictError("User already exists")
            logger.error("Registration failed for %s: %s", register_data.email, error_message)
            raise InternalError("Registration failed")

        if not auth_response.user:
            raise ValidationError("Failed to register user")
        return auth_response.user

    def _delete_auth_user(self, user_id: str) -> None:
        self.admin_client.auth.admin.delete_user(user_id)

    def _delete_row(self, table: str, row_id: str) -> None:
        execute(self.supabase.table(table).delete().eq("id", row_id), f"Failed to clean up {table}")

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate with email and password on an isolated client"""
        try:
            auth_response = self._client_factory().auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise AuthenticationError("Invalid email or password")
            logger.error("Login failed: %s", error_message)
            raise InternalError("Login failed")

        if not auth_response.user or not auth_response.session:
            raise AuthenticationError("Invalid credentials")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            refresh_token=getattr(auth_response.session, "refresh_token", None),
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or login_data.email
        )

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.debug("Token validation failed: %s", e)
            raise AuthenticationError("Invalid or expired token")
        if not user_response or not user_response.user:
            raise AuthenticationError("Invalid or expired token")
        user = user_response.user
        user_data = {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "app_metadata": user.app_metadata or {},
            "email_confirmed_at": getattr(user, "email_confirmed_at", None),
            "last_sign_in_at": getattr(user, "last_sign_in_at", None),
            "created_at": user.created_at,
            "updated_at": user.updated_at
        }
        _cache_user(cache_key, user_data, now)
        return user_data

    def logout(self, token: str) -> bool:
        """Revoke the session behind `token`"""
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            self.admin_client.auth.admin.sign_out(token)
            return True
        except Exception as e:
            logger.warning("Sign-out failed: %s", e)
            return False

    def update_user_metadata(self, user_id: str, metadata: Dict[str, Any]) -> None:
        """Merge `metadata` into the auth user's user_metadata (requires service role key)"""
        try:
            response = self.admin_client.auth.admin.update_user_by_id(
                user_id,
                {"user_metadata": metadata}
            )
        except AppError:
            raise
        except Exception as e:
            logger.error("Failed to update auth metadata for %s: %s", user_id, e)
            raise InternalError("Failed to update user metadata")
        if not response or not response.user:
            raise InternalError("Failed to update user metadata")

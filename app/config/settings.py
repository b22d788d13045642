from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for admin operations like updating auth user metadata

    # App
    app_name: str = "salesdesk-backend"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    app_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    log_format: str = "text"  # text | json
    cors_origins: str = "http://localhost:3000,https://localhost:3000"
    csrf_trusted_origins: str = ""

    # Session / workspace context
    session_cookie_name: str = "sb-access-token"
    workspace_header: str = "X-Workspace-ID"
    require_workspace_header: bool = True

    # Rate limiting (limits format, e.g. "100/15 minutes")
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"  # redis://host:6379 for multi-instance deployments
    rate_limit: str = "100/15 minutes"
    rate_limit_auth: str = "5/15 minutes"
    rate_limit_upload: str = "10/hour"

    # Audit
    audit_persist_events: bool = True
    audit_table: str = "security_events"

    # Uploads
    avatar_bucket: str = "avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024
    avatar_allowed_types: str = "image/jpeg,image/png,image/webp,image/gif"

    # Invitations
    invitation_ttl_hours: int = 168

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_csrf_trusted_origins_list(self) -> List[str]:
        return [o.strip() for o in self.csrf_trusted_origins.split(",") if o.strip()]

    def get_avatar_allowed_types(self) -> List[str]:
        return [t.strip() for t in self.avatar_allowed_types.split(",") if t.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()

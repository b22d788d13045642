"""Per-request identity and workspace context handed to route handlers."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.core.audit import SecurityEvent
from app.core.roles import Role


@dataclass
class Membership:
    id: str
    user_id: str
    workspace_id: str
    role: Role
    is_active: bool
    workspace: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any], workspace: Dict[str, Any]) -> "Membership":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            workspace_id=row["workspace_id"],
            role=Role.parse(row["role"]),
            is_active=bool(row.get("is_active", True)),
            workspace=workspace,
        )

    @property
    def is_manager(self) -> bool:
        return self.role.is_manager


@dataclass
class RequestMeta:
    path: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    def event(self, action: str, resource: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None,
              user_id: Optional[str] = None, workspace_id: Optional[str] = None) -> SecurityEvent:
        return SecurityEvent(
            action=action,
            user_id=user_id,
            workspace_id=workspace_id,
            resource=resource or self.path,
            metadata=metadata or {},
            ip=self.ip,
            user_agent=self.user_agent,
        )


@dataclass
class UserContext:
    """Authenticated caller without a resolved workspace."""

    user: Dict[str, Any]
    meta: RequestMeta

    @property
    def user_id(self) -> str:
        return self.user["id"]

    def event(self, action: str, resource: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None) -> SecurityEvent:
        return self.meta.event(action, resource, metadata, user_id=self.user_id)


@dataclass
class AuthContext(UserContext):
    """Authenticated caller acting inside one workspace."""

    member: Membership = None

    @property
    def workspace_id(self) -> str:
        return self.member.workspace_id

    @property
    def role(self) -> Role:
        return self.member.role

    def event(self, action: str, resource: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None) -> SecurityEvent:
        return self.meta.event(action, resource, metadata, user_id=self.user_id,
                               workspace_id=self.workspace_id)

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from app.core.roles import Role


class TeamInvite(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: EmailStr
    role: Role
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    custom_message: Optional[str] = Field(None, max_length=500)


class TeamMemberUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: Optional[Role] = None
    is_active: Optional[bool] = None


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    joined_at: Optional[datetime] = None


class InvitationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    invite_url: str
    email: str
    role: Role
    expires_at: datetime

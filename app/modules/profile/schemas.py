from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.modules.auth.schemas import PHONE_PATTERN


class ProfilePreferences(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    weekly_reports: Optional[bool] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    timezone: Optional[str] = Field(None, max_length=64)
    avatar_url: Optional[str] = Field(None, pattern=r"^https?://", max_length=2048)
    bio: Optional[str] = Field(None, max_length=500)
    preferences: Optional[ProfilePreferences] = None

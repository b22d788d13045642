from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkingHours(CamelModel):
    start: str = Field(pattern=TIME_PATTERN)
    end: str = Field(pattern=TIME_PATTERN)


class WorkspaceFeatures(CamelModel):
    eod_reporting: Optional[bool] = None
    team_chat: Optional[bool] = None
    analytics: Optional[bool] = None


class WorkspaceSettings(CamelModel):
    timezone: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    working_days: Optional[List[Annotated[int, Field(ge=0, le=6)]]] = None
    working_hours: Optional[WorkingHours] = None
    features: Optional[WorkspaceFeatures] = None


class WorkspaceUpdate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    settings: Optional[WorkspaceSettings] = None

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Mood(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"
    TERRIBLE = "terrible"


class Period(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class EODReportCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    report_date: date = Field(alias="date")
    calls_made: int = Field(ge=0)
    appointments: int = Field(ge=0)
    sales: int = Field(ge=0)
    revenue: float = Field(ge=0)
    notes: Optional[str] = Field(None, max_length=1000)
    mood: Optional[Mood] = None
    challenges: Optional[str] = Field(None, max_length=500)
    wins: Optional[str] = Field(None, max_length=500)


class EODReportUpdate(BaseModel):
    """Partial update. The report date is fixed once submitted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    calls_made: Optional[int] = Field(None, ge=0)
    appointments: Optional[int] = Field(None, ge=0)
    sales: Optional[int] = Field(None, ge=0)
    revenue: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)
    mood: Optional[Mood] = None
    challenges: Optional[str] = Field(None, max_length=500)
    wins: Optional[str] = Field(None, max_length=500)

    @field_validator("calls_made", "appointments", "sales", "revenue")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ReportAuthor(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


class EODReportResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    report_date: date = Field(alias="date")
    calls_made: int = 0
    appointments: int = 0
    sales: int = 0
    revenue: float = 0
    notes: Optional[str] = None
    mood: Optional[str] = None
    challenges: Optional[str] = None
    wins: Optional[str] = None
    user: ReportAuthor
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

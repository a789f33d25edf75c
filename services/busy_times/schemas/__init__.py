from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class EventBusyDetail(BaseModel):
    """A span of time during which the user cannot be booked."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    title: Optional[str] = Field(None, description="Display label only")
    source: Optional[str] = Field(
        None, description="Provenance tag (booking tag or calendar event id)"
    )

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_timezone_aware(v)


class CalendarCredential(BaseModel):
    """An external calendar authorization held by the user."""

    id: int
    type: str = Field(..., description="Integration type, e.g. google_calendar")
    user_id: Optional[int] = None
    app_id: Optional[str] = None


class SelectedCalendar(BaseModel):
    """A connected calendar the user chose to check for conflicts."""

    integration: str
    external_id: str
    user_id: Optional[int] = None


class BusyTimeRequest(BaseModel):
    user_id: int
    username: str = Field(..., description="Addresses the calendar connector only")
    event_type_id: Optional[int] = Field(
        None, description="Informational; does not narrow the booking lookup"
    )
    start_time: datetime
    end_time: datetime
    before_event_buffer: Optional[int] = Field(
        None, description="Minutes of padding; absent means 0"
    )
    after_event_buffer: Optional[int] = Field(
        None, description="Minutes of padding; absent means 0"
    )
    selected_calendars: List[SelectedCalendar] = Field(default_factory=list)
    credentials: List[CalendarCredential] = Field(default_factory=list)
    reschedule_uid: Optional[str] = Field(
        None, description="Uid of the booking being moved; excluded from the result"
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_timezone_aware(v)


class BusyTimesResponse(BaseModel):
    busy_times: List[EventBusyDetail]
    total: int
    request_id: str

import time
from datetime import datetime
from typing import List, Optional, Sequence

from services.busy_times.schemas import (
    CalendarCredential,
    EventBusyDetail,
    SelectedCalendar,
)
from services.busy_times.services.buffers import expand_interval
from services.busy_times.services.calendar_integration import CalendarConnector
from services.common.logging_config import get_logger

logger = get_logger(__name__)


async def get_calendar_busy_times(
    connector: CalendarConnector,
    username: str,
    credentials: Sequence[CalendarCredential],
    start_time: datetime,
    end_time: datetime,
    selected_calendars: Sequence[SelectedCalendar],
    before_event_buffer: Optional[int] = None,
    after_event_buffer: Optional[int] = None,
) -> List[EventBusyDetail]:
    """
    Busy intervals from connected calendars, padded by the caller's buffers.

    Polarity is reversed relative to bookings: the after-buffer pads the
    start and the before-buffer pads the end. Availability depends on this,
    keep it as is.

    Without credentials the connector is not called and nothing is returned.
    Connector errors propagate unchanged.
    """
    if not credentials:
        return []

    started = time.perf_counter()
    calendar_busy_times = await connector.fetch_busy_intervals(
        username, credentials, start_time, end_time, selected_calendars
    )
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.debug(
        f"Connected calendars get took {elapsed_ms:.1f} ms for user {username}",
        intervals=len(calendar_busy_times),
    )

    return [
        expand_interval(
            interval,
            before_minutes=after_event_buffer,
            after_minutes=before_event_buffer,
        )
        for interval in calendar_busy_times
    ]

import asyncio
from typing import Awaitable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from services.busy_times.schemas import BusyTimeRequest, EventBusyDetail
from services.busy_times.services.booking_busy_times import get_booking_busy_times
from services.busy_times.services.calendar_busy_times import get_calendar_busy_times
from services.busy_times.services.calendar_integration import CalendarConnector
from services.busy_times.settings import get_settings
from services.common.logging_config import get_logger

logger = get_logger(__name__)


async def get_busy_times(
    request: BusyTimeRequest,
    *,
    session: AsyncSession,
    connector: CalendarConnector,
    concurrent: Optional[bool] = None,
) -> List[EventBusyDetail]:
    """
    All busy intervals for one user within one window.

    Booking intervals come first in store order, followed by calendar
    intervals in connector order. Nothing is sorted, merged or de-duplicated;
    the slot generator downstream owns that.

    Args:
        request: The user, window, buffers and calendar selection
        session: Database session for the booking lookup
        connector: Connected-calendar source, used only with credentials
        concurrent: Run both lookups at once; defaults to the
            ``busy_times_concurrent_lookups`` setting

    Raises:
        NotFoundError: the user does not exist
        ServiceError: the booking query failed
        ProviderError: the calendar connector failed
    """
    if concurrent is None:
        concurrent = get_settings().busy_times_concurrent_lookups

    def bookings_lookup() -> Awaitable[List[EventBusyDetail]]:
        return get_booking_busy_times(
            session,
            request.user_id,
            request.start_time,
            request.end_time,
            before_event_buffer=request.before_event_buffer,
            after_event_buffer=request.after_event_buffer,
            reschedule_uid=request.reschedule_uid,
        )

    def calendars_lookup() -> Awaitable[List[EventBusyDetail]]:
        return get_calendar_busy_times(
            connector,
            request.username,
            request.credentials,
            request.start_time,
            request.end_time,
            request.selected_calendars,
            before_event_buffer=request.before_event_buffer,
            after_event_buffer=request.after_event_buffer,
        )

    if concurrent:
        tasks = [
            asyncio.ensure_future(bookings_lookup()),
            asyncio.ensure_future(calendars_lookup()),
        ]
        try:
            # gather keeps argument order, so bookings still come first
            booking_busy_times, calendar_busy_times = await asyncio.gather(*tasks)
        except Exception:
            # gather leaves the sibling running; one failure fails the whole call
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
    else:
        booking_busy_times = await bookings_lookup()
        calendar_busy_times = await calendars_lookup()

    logger.info(
        "Resolved busy times",
        user_id=request.user_id,
        booking_intervals=len(booking_busy_times),
        calendar_intervals=len(calendar_busy_times),
    )
    return booking_busy_times + calendar_busy_times

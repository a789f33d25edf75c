"""
Busy times derived from bookings stored in the database.

A user is busy during any accepted booking they own OR attend. See
``build_busy_bookings_query`` for the exact filter.
"""

import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.busy_times.models import Attendee, Booking, BookingStatus, EventType, User
from services.busy_times.schemas import EventBusyDetail, ensure_timezone_aware
from services.busy_times.services.buffers import expand_interval, minutes_or_zero
from services.common.http_errors import ErrorCode, NotFoundError, ServiceError
from services.common.logging_config import get_logger

logger = get_logger(__name__)


def booking_source(event_type_id: Optional[int], booking_id: int) -> str:
    """Provenance tag for a booking interval; a missing event type renders empty."""
    event_type_token = "" if event_type_id is None else str(event_type_id)
    return f"eventType-{event_type_token}-booking-{booking_id}"


def owned_by(user_id: int):
    """The user is the primary host of the booking."""
    return Booking.user_id == user_id


def attended_by(email: str):
    """The user attends the booking, whoever owns it."""
    return Booking.attendees.any(Attendee.email == email)


def build_busy_bookings_query(
    user_id: int,
    user_email: str,
    start_time: datetime,
    end_time: datetime,
    reschedule_uid: Optional[str] = None,
) -> Select:
    """
    Select every accepted booking fully inside the window that the user owns
    or attends.

    The attendee branch is an EXISTS subquery, so a booking that is both
    owned and attended comes back as a single row.
    """
    shared = [
        Booking.start_time >= start_time,
        Booking.end_time <= end_time,
        Booking.status == BookingStatus.ACCEPTED,
    ]
    # The booking being rescheduled must not block the slots around itself
    if reschedule_uid:
        shared.append(Booking.uid != reschedule_uid)

    return (
        select(
            Booking.id,
            Booking.start_time,
            Booking.end_time,
            Booking.title,
            EventType.id.label("event_type_id"),
            EventType.before_event_buffer,
            EventType.after_event_buffer,
        )
        .outerjoin(EventType, Booking.event_type_id == EventType.id)
        .where(and_(*shared), or_(owned_by(user_id), attended_by(user_email)))
        .order_by(Booking.start_time, Booking.id)
    )


async def get_user_email(session: AsyncSession, user_id: int) -> str:
    """Look up the user's email. A missing user is fatal for the whole lookup."""
    result = await session.execute(select(User.email).where(User.id == user_id))
    email = result.scalar_one_or_none()
    if email is None:
        raise NotFoundError("User", str(user_id))
    return email


async def get_booking_busy_times(
    session: AsyncSession,
    user_id: int,
    start_time: datetime,
    end_time: datetime,
    before_event_buffer: Optional[int] = None,
    after_event_buffer: Optional[int] = None,
    reschedule_uid: Optional[str] = None,
) -> List[EventBusyDetail]:
    """
    Return one buffer-expanded interval per booking that blocks the user.

    Buffer polarity is crossed and must stay that way:
        start = booking.start - event_type.before_event_buffer - after_event_buffer
        end = booking.end + event_type.after_event_buffer + before_event_buffer

    Raises:
        NotFoundError: the user does not exist
        ServiceError: the database query failed
    """
    start_time = ensure_timezone_aware(start_time)
    end_time = ensure_timezone_aware(end_time)
    logger.debug(
        f"Checking busy time from bookings in range {start_time.isoformat()} to {end_time.isoformat()}",
        user_id=user_id,
        status=BookingStatus.ACCEPTED.value,
        reschedule_uid=reschedule_uid,
    )

    query_started = time.perf_counter()
    try:
        user_email = await get_user_email(session, user_id)
        query = build_busy_bookings_query(
            user_id, user_email, start_time, end_time, reschedule_uid
        )
        rows = (await session.execute(query)).all()
    except SQLAlchemyError as e:
        logger.error("Booking busy time query failed", user_id=user_id, error=str(e))
        raise ServiceError(
            message=f"Failed to load bookings for user {user_id}",
            code=ErrorCode.DATABASE_ERROR,
            details={"user_id": user_id},
        ) from e
    query_ms = (time.perf_counter() - query_started) * 1000

    busy_times: List[EventBusyDetail] = []
    seen_booking_ids = set()
    for row in rows:
        if row.id in seen_booking_ids:
            continue
        seen_booking_ids.add(row.id)

        interval = EventBusyDetail(
            start=row.start_time,
            end=row.end_time,
            title=row.title,
            source=booking_source(row.event_type_id, row.id),
        )
        busy_times.append(
            expand_interval(
                interval,
                before_minutes=minutes_or_zero(row.before_event_buffer)
                + minutes_or_zero(after_event_buffer),
                after_minutes=minutes_or_zero(row.after_event_buffer)
                + minutes_or_zero(before_event_buffer),
            )
        )

    logger.debug(
        f"Busy time from bookings took {query_ms:.1f} ms",
        user_id=user_id,
        busy_times=[bt.model_dump(mode="json") for bt in busy_times],
    )
    return busy_times

from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from services.busy_times.api.auth import verify_api_key_auth
from services.busy_times.models import get_async_session
from services.busy_times.schemas import BusyTimeRequest, BusyTimesResponse
from services.busy_times.services.busy_times import get_busy_times
from services.busy_times.services.calendar_integration import (
    CalendarConnector,
    get_calendar_connector,
)
from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

router = APIRouter()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_async_session() as session:
        yield session


@router.post("", response_model=BusyTimesResponse)
async def post_busy_times(
    busy_time_request: BusyTimeRequest,
    service_name: str = Depends(verify_api_key_auth),
    session: AsyncSession = Depends(get_db_session),
    connector: CalendarConnector = Depends(get_calendar_connector),
) -> BusyTimesResponse:
    """
    Busy intervals for one user in one window, bookings first, then
    connected calendars.
    """
    logger.info(
        "Busy times requested",
        user_id=busy_time_request.user_id,
        start=busy_time_request.start_time.isoformat(),
        end=busy_time_request.end_time.isoformat(),
        calendars=len(busy_time_request.selected_calendars),
        client=service_name,
    )
    busy_times = await get_busy_times(
        busy_time_request, session=session, connector=connector
    )
    return BusyTimesResponse(
        busy_times=busy_times,
        total=len(busy_times),
        request_id=request_id_var.get(),
    )

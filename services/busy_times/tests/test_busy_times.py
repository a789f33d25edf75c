"""
Tests for the busy times aggregator.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from services.busy_times.models import get_async_session
from services.busy_times.schemas import (
    BusyTimeRequest,
    CalendarCredential,
    EventBusyDetail,
    SelectedCalendar,
)
from services.busy_times.services.busy_times import get_busy_times
from services.busy_times.tests.test_base import BaseBusyTimesTest
from services.common.http_errors import NotFoundError, ProviderError


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 15, hour, minute, tzinfo=timezone.utc)


class TestGetBusyTimes(BaseBusyTimesTest):
    def setup_method(self, method=None):
        super().setup_method(method)
        self.user_id = self.add_user("ada@example.com", "ada")
        self.other_user_id = self.add_user("grace@example.com", "grace")

        self.connector = AsyncMock()
        self.connector.fetch_busy_intervals.return_value = [
            EventBusyDetail(start=at(7), end=at(8), title="Gym", source="gcal-1"),
            EventBusyDetail(start=at(6), end=at(6, 30), source="gcal-2"),
        ]

    def _request(self, **overrides) -> BusyTimeRequest:
        fields = {
            "user_id": self.user_id,
            "username": "ada",
            "start_time": at(0),
            "end_time": at(23, 59),
            "before_event_buffer": 5,
            "after_event_buffer": 10,
        }
        fields.update(overrides)
        return BusyTimeRequest(**fields)

    def _with_calendars(self, **overrides) -> BusyTimeRequest:
        return self._request(
            credentials=[CalendarCredential(id=1, type="google_calendar")],
            selected_calendars=[
                SelectedCalendar(integration="google_calendar", external_id="primary")
            ],
            **overrides,
        )

    async def _busy(self, request: BusyTimeRequest, **kwargs):
        async with get_async_session() as session:
            return await get_busy_times(
                request, session=session, connector=self.connector, **kwargs
            )

    async def test_without_credentials_only_bookings(self):
        b1 = self.add_booking(self.user_id, at(10), at(11), title="B1")
        b2 = self.add_booking(
            self.other_user_id,
            at(14),
            at(15),
            title="B2",
            attendee_emails=["ada@example.com"],
        )
        self.add_booking(self.user_id, at(9), at(9, 30), uid="b3")

        busy = await self._busy(self._request(reschedule_uid="b3"))

        assert [(b.start, b.end, b.source) for b in busy] == [
            (at(9, 50), at(11, 5), f"eventType--booking-{b1}"),
            (at(13, 50), at(15, 5), f"eventType--booking-{b2}"),
        ]
        self.connector.fetch_busy_intervals.assert_not_called()

    async def test_bookings_come_before_calendar_intervals(self):
        booking_id = self.add_booking(self.user_id, at(10), at(11))

        busy = await self._busy(self._with_calendars(), concurrent=False)

        # Calendar intervals keep connector order even though they start earlier
        assert [b.source for b in busy] == [
            f"eventType--booking-{booking_id}",
            "gcal-1",
            "gcal-2",
        ]
        # Calendar padding: start - after buffer, end + before buffer
        assert (busy[1].start, busy[1].end) == (at(6, 50), at(8, 5))

    async def test_concurrent_lookups_keep_the_same_order(self):
        self.add_booking(self.user_id, at(10), at(11))

        async def slow_fetch(*args):
            await asyncio.sleep(0.01)
            return [EventBusyDetail(start=at(7), end=at(8), source="gcal-1")]

        self.connector.fetch_busy_intervals.side_effect = slow_fetch
        sequential = await self._busy(self._with_calendars(), concurrent=False)
        concurrent = await self._busy(self._with_calendars(), concurrent=True)

        assert concurrent == sequential
        assert [b.source for b in concurrent][-1] == "gcal-1"

    async def test_concurrency_defaults_to_setting(self):
        self.settings.busy_times_concurrent_lookups = True

        with patch(
            "services.busy_times.services.busy_times.asyncio.gather",
            wraps=asyncio.gather,
        ) as mock_gather:
            await self._busy(self._with_calendars())

        mock_gather.assert_called_once()

    async def test_calendar_intervals_are_not_merged_with_bookings(self):
        self.add_booking(self.user_id, at(7), at(8))

        busy = await self._busy(
            self._with_calendars(before_event_buffer=0, after_event_buffer=0)
        )

        # Same span from both sources is reported twice
        assert [(b.start, b.end) for b in busy][:2] == [(at(7), at(8)), (at(7), at(8))]

    async def test_missing_user_fails_before_calendar_lookup(self):
        with pytest.raises(NotFoundError):
            await self._busy(self._with_calendars(user_id=9999), concurrent=False)

        self.connector.fetch_busy_intervals.assert_not_called()

    async def test_missing_user_cancels_concurrent_calendar_lookup(self):
        events = []

        async def never_answers(*args):
            events.append("started")
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                events.append("cancelled")
                raise
            events.append("finished")

        self.connector.fetch_busy_intervals.side_effect = never_answers

        with pytest.raises(NotFoundError):
            await self._busy(self._with_calendars(user_id=9999), concurrent=True)

        # The calendar lookup is stopped before the error reaches the caller
        assert events == ["started", "cancelled"]

    async def test_connector_failure_is_not_an_empty_result(self):
        self.add_booking(self.user_id, at(10), at(11))
        self.connector.fetch_busy_intervals.side_effect = ProviderError(
            "Calendar busy time lookup failed", provider="calendar"
        )

        with pytest.raises(ProviderError):
            await self._busy(self._with_calendars())

    async def test_repeated_calls_are_identical(self):
        self.add_booking(self.user_id, at(10), at(11))
        self.add_booking(
            self.other_user_id, at(12), at(13), attendee_emails=["ada@example.com"]
        )

        first = await self._busy(self._with_calendars())
        second = await self._busy(self._with_calendars())

        assert first == second

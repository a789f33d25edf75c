"""
Base classes for Busy Times Service tests.

Provides common setup and teardown for all busy times tests, including
test settings, a throwaway SQLite database and helpers to seed it.
"""

import os
import tempfile
from datetime import datetime
from itertools import count
from typing import Iterable, Optional

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from services.common.logging_config import request_id_var
from services.common.test_utils import BaseSelectiveHTTPIntegrationTest

_uids = count(1)


class BaseBusyTimesTest(BaseSelectiveHTTPIntegrationTest):
    """Base class for all Busy Times Service tests with HTTP call prevention."""

    def setup_method(self, method=None):
        # Call parent setup to enable HTTP call detection
        super().setup_method(method)
        request_id_var.set("uninitialized")

        # Use a unique temp file for each test
        self._db_fd, self._db_path = tempfile.mkstemp(suffix=".sqlite3")
        db_url = f"sqlite:///{self._db_path}"
        os.environ["DB_URL_BUSY_TIMES"] = db_url

        import services.busy_times.settings as busy_times_settings
        from services.busy_times.settings import Settings

        # Store original settings singleton for cleanup
        self._original_settings = busy_times_settings._settings
        busy_times_settings._settings = Settings(
            db_url_busy_times=db_url,
            office_service_url="http://localhost:8003",
            api_busy_times_office_key="test-busy-times-office-key",
            api_frontend_busy_times_key="test-frontend-busy-times-key",
            log_level="INFO",
            log_format="json",
        )

        from services.busy_times.models import create_all_tables_for_testing, reset_db

        # Engines cached by an earlier test point at a deleted file
        reset_db()
        create_all_tables_for_testing()

    def teardown_method(self, method=None):
        # Call parent teardown to clean up HTTP patches
        super().teardown_method(method)

        from services.busy_times.models import get_engine, reset_db

        get_engine().dispose()
        reset_db()

        import services.busy_times.settings as busy_times_settings

        busy_times_settings._settings = self._original_settings
        os.environ.pop("DB_URL_BUSY_TIMES", None)

        # Close and remove temporary database file
        if hasattr(self, "_db_fd"):
            os.close(self._db_fd)
        if hasattr(self, "_db_path") and os.path.exists(self._db_path):
            os.unlink(self._db_path)

    @property
    def settings(self):
        from services.busy_times.settings import get_settings

        return get_settings()

    def add_user(self, email: str, username: Optional[str] = None) -> int:
        from services.busy_times.models import User, get_engine

        with Session(get_engine()) as session:
            user = User(email=email, username=username or email.split("@")[0])
            session.add(user)
            session.commit()
            return user.id

    def add_event_type(
        self,
        user_id: int,
        before_event_buffer: Optional[int] = 0,
        after_event_buffer: Optional[int] = 0,
        length: int = 60,
    ) -> int:
        from services.busy_times.models import EventType, get_engine

        with Session(get_engine()) as session:
            event_type = EventType(
                user_id=user_id,
                title="Intro call",
                slug=f"intro-{next(_uids)}",
                length=length,
                before_event_buffer=before_event_buffer,
                after_event_buffer=after_event_buffer,
            )
            session.add(event_type)
            session.commit()
            return event_type.id

    def add_booking(
        self,
        user_id: Optional[int],
        start_time: datetime,
        end_time: datetime,
        event_type_id: Optional[int] = None,
        status=None,
        uid: Optional[str] = None,
        title: str = "Meeting",
        attendee_emails: Iterable[str] = (),
    ) -> int:
        from services.busy_times.models import (
            Attendee,
            Booking,
            BookingStatus,
            get_engine,
        )

        with Session(get_engine()) as session:
            booking = Booking(
                uid=uid or f"booking-{next(_uids)}",
                user_id=user_id,
                event_type_id=event_type_id,
                title=title,
                start_time=start_time,
                end_time=end_time,
                status=status or BookingStatus.ACCEPTED,
            )
            booking.attendees = [
                Attendee(email=email, name=email.split("@")[0], time_zone="UTC")
                for email in attendee_emails
            ]
            session.add(booking)
            session.commit()
            return booking.id


class BaseBusyTimesIntegrationTest(BaseBusyTimesTest):
    """Base class for Busy Times Service tests that go through the HTTP API."""

    def setup_method(self, method=None):
        super().setup_method(method)

        # Import app after settings are in place
        from services.busy_times.main import app

        self.app = app
        self.client = TestClient(self.app)

    def teardown_method(self, method=None):
        self.app.dependency_overrides.clear()
        super().teardown_method(method)

    def auth_headers(self) -> dict:
        return {"X-API-Key": "test-frontend-busy-times-key"}

"""
Connectors that read busy intervals from a user's connected calendars.

The connector owns reconciliation across calendars: callers receive a single
combined list, or an exception. A failure is never reported as an empty list.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from services.busy_times.schemas import (
    CalendarCredential,
    EventBusyDetail,
    SelectedCalendar,
)
from services.busy_times.settings import Settings, get_settings
from services.common.http_errors import ErrorCode, ProviderError
from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class CalendarConnector(ABC):
    """Source of raw busy intervals from third-party calendars."""

    @abstractmethod
    async def fetch_busy_intervals(
        self,
        username: str,
        credentials: Sequence[CalendarCredential],
        start_time: datetime,
        end_time: datetime,
        selected_calendars: Sequence[SelectedCalendar],
    ) -> List[EventBusyDetail]:
        """Return busy intervals across all calendars the credentials reach."""


class OfficeCalendarConnector(CalendarConnector):
    """
    Reads busy intervals through the office service, which talks to the
    Google and Microsoft calendar APIs.

    The office service answers with ``{"data": {"busy": [...],
    "provider_errors": {...}}}``. Any reported provider error fails the
    whole lookup unless ``allow_partial_calendar_results`` is enabled.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def _headers(self, username: str) -> Dict[str, str]:
        headers = {
            "X-API-Key": self.settings.api_busy_times_office_key,
            "X-User-Id": username,
        }
        # Propagate request ID for distributed tracing
        request_id = request_id_var.get()
        if request_id and request_id != "uninitialized":
            headers["X-Request-Id"] = request_id
        return headers

    async def fetch_busy_intervals(
        self,
        username: str,
        credentials: Sequence[CalendarCredential],
        start_time: datetime,
        end_time: datetime,
        selected_calendars: Sequence[SelectedCalendar],
    ) -> List[EventBusyDetail]:
        url = f"{self.settings.office_service_url}/v1/calendar/busy"
        payload = {
            "username": username,
            "credentials": [
                {"id": credential.id, "type": credential.type}
                for credential in credentials
            ],
            "start": start_time.isoformat(),
            "end": end_time.isoformat(),
            "calendars": [
                {"integration": c.integration, "external_id": c.external_id}
                for c in selected_calendars
            ],
        }

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.calendar_request_timeout)
        ) as client:
            try:
                resp = await client.post(
                    url, headers=self._headers(username), json=payload
                )
                resp.raise_for_status()
                body = resp.json()
            except httpx.HTTPStatusError as e:
                logger.warning(
                    f"HTTP error from office service: {e.response.status_code}",
                    username=username,
                    status_code=e.response.status_code,
                )
                raise ProviderError(
                    message=f"Calendar busy time lookup failed with status {e.response.status_code}",
                    provider="calendar",
                    response_body=e.response.text,
                ) from e
            except httpx.HTTPError as e:
                logger.error(
                    f"Office service unreachable: {e}", username=username
                )
                raise ProviderError(
                    message=f"Calendar busy time lookup failed: {e}",
                    provider="calendar",
                    code=ErrorCode.PROVIDER_UNAVAILABLE,
                ) from e
            except ValueError as e:
                logger.warning(
                    "Office service returned a non-JSON busy time reply",
                    username=username,
                )
                raise ProviderError(
                    message=f"Malformed calendar busy time response: {e}",
                    provider="calendar",
                ) from e

        return self._parse_busy_response(body, username)

    def _parse_busy_response(self, body: Any, username: str) -> List[EventBusyDetail]:
        data = (body.get("data") or {}) if isinstance(body, dict) else None
        busy = data.get("busy", []) if isinstance(data, dict) else None
        # An absent list means no busy time, anything else unexpected is a failure
        if not isinstance(busy, list):
            raise ProviderError(
                message="Malformed calendar busy time response: unexpected shape",
                provider="calendar",
                response_body=str(body)[:500],
            )

        provider_errors = data.get("provider_errors") or {}
        if provider_errors:
            if not self.settings.allow_partial_calendar_results:
                raise ProviderError(
                    message="Some connected calendars could not be read",
                    provider="calendar",
                    code=ErrorCode.PROVIDER_PARTIAL_FAILURE,
                    details={"provider_errors": provider_errors},
                )
            logger.warning(
                "Returning partial calendar busy times",
                username=username,
                provider_errors=provider_errors,
            )

        try:
            return [EventBusyDetail.model_validate(item) for item in busy]
        except ValueError as e:
            raise ProviderError(
                message=f"Malformed calendar busy time response: {e}",
                provider="calendar",
            ) from e


def get_calendar_connector() -> CalendarConnector:
    """FastAPI dependency returning the configured connector."""
    return OfficeCalendarConnector()

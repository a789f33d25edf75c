from datetime import timedelta
from typing import Optional

from services.busy_times.schemas import EventBusyDetail


def minutes_or_zero(value: Optional[int]) -> int:
    """Buffers are optional everywhere; a missing value is zero minutes."""
    return value if value is not None else 0


def expand_interval(
    interval: EventBusyDetail,
    before_minutes: Optional[int] = None,
    after_minutes: Optional[int] = None,
) -> EventBusyDetail:
    """
    Return a copy of ``interval`` padded on both sides.

    ``start`` moves earlier by ``before_minutes`` and ``end`` moves later by
    ``after_minutes``. The input is left untouched.
    """
    return interval.model_copy(
        update={
            "start": interval.start - timedelta(minutes=minutes_or_zero(before_minutes)),
            "end": interval.end + timedelta(minutes=minutes_or_zero(after_minutes)),
        }
    )

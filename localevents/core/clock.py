"""Wall-clock helpers expressed as integer epoch milliseconds."""

import datetime
import logging
import os
import time
from typing import Callable, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

TEST_TIME_ENV = "LOCALEVENTS_TEST_TIME"


def now_ms() -> int:
    """Get the current time as epoch milliseconds.

    Can be overridden for diagnostics via the LOCALEVENTS_TEST_TIME environment
    variable (ISO 8601, e.g. "2025-10-27T08:20:00+02:00"). Naive values are
    taken as UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=datetime.timezone.utc)
            return int(dt.timestamp() * 1000)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return time.time_ns() // 1_000_000


def to_datetime(timestamp_ms: Optional[int]) -> Optional[datetime.datetime]:
    """Convert epoch milliseconds to an aware UTC datetime (None passes through)."""
    if timestamp_ms is None:
        return None
    return datetime.datetime.fromtimestamp(timestamp_ms / 1000, tz=datetime.timezone.utc)

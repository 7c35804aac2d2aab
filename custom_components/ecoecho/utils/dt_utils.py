# File: utils/dt_utils.py
"""Date and time utilities for EcoEcho.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Functions:
    - set_default_timezone / get_default_timezone: Local timezone configuration
    - dt_now_local: Current datetime in local timezone
    - dt_now_utc: Current datetime in UTC
    - dt_now_iso: Current UTC datetime as ISO string
    - dt_parse: Parse stored timestamps (including legacy "Z" suffixed strings)
    - dt_local_date: Calendar day of a timestamp in local timezone
    - dt_epoch_millis: Milliseconds since epoch
"""

from __future__ import annotations

from datetime import UTC, date, datetime
import logging
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil import parser as dt_parser

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default timezone - replaced with the Home Assistant zone during setup
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_local(tz: ZoneInfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware)."""
    return datetime.now(tz or DEFAULT_TIME_ZONE)


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_iso() -> str:
    """Return the current UTC datetime as an ISO 8601 string."""
    return dt_now_utc().isoformat()


def dt_epoch_millis(dt_obj: datetime | None = None) -> int:
    """Return milliseconds since the epoch for dt_obj (default: now)."""
    return int((dt_obj or dt_now_utc()).timestamp() * 1000)


# ==============================================================================
# Parsing
# ==============================================================================


def dt_parse(dt_input: str | datetime | None) -> datetime | None:
    """Normalize a stored timestamp to an aware datetime.

    Accepts ISO 8601 strings as written by this integration as well as the
    ``2025-04-07T14:30:00.000Z`` strings produced by the legacy mobile client.
    Naive values are assumed to be UTC.

    Returns:
        Aware datetime, or None if the input is empty or unparseable.
    """
    if not dt_input:
        return None

    if isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, str):
        try:
            result = dt_parser.isoparse(dt_input)
        except (ValueError, OverflowError):
            _LOGGER.debug("Unparseable timestamp '%s'", dt_input)
            return None
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=UTC)
    return result


def dt_local_date(
    dt_input: str | datetime | None, tz: ZoneInfo | None = None
) -> date | None:
    """Return the local calendar day of a timestamp, or None."""
    parsed = dt_parse(dt_input)
    if parsed is None:
        return None
    return parsed.astimezone(tz or DEFAULT_TIME_ZONE).date()

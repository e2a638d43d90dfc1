"""
Current time extension.

Gives the model the wall-clock facts it cannot know on its own: the time,
the date and the timezone they are expressed in. Formatting follows
``strftime`` patterns configured on the extension, so the same instance
always answers in the same shape.

Without a ``timezone`` argument the extension answers in its
``default_timezone``, or in the host's local time when none is set. Unknown
timezone names fail the call rather than silently answering in another zone.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parley.conversation.extensions.base import BaseFunctionExtension

logger = logging.getLogger(__name__)

_TIMEZONE_PARAMETER = {
    "type": "string",
    "description": "IANA zone such as 'Europe/Paris'; defaults to the assistant's zone",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CurrentTimeExtension(BaseFunctionExtension):
    """Provides current time and date information.

    Args:
        date_format: ``strftime`` pattern for dates.
        time_format: ``strftime`` pattern for times.
        include_timezone: Add the timezone line to the summary.
        include_unix_timestamp: Add the Unix timestamp line to the summary.
        default_timezone: IANA zone used when a call names none; ``None``
            means the host's local time.
        clock: Returns the current aware datetime; tests pin it.
    """

    name = "CurrentTime"
    description = "Provides current time and date information"

    def __init__(
        self,
        date_format: str = "%A, %B %d, %Y",
        time_format: str = "%H:%M:%S",
        include_timezone: bool = True,
        include_unix_timestamp: bool = False,
        default_timezone: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
        enabled: bool = True,
    ) -> None:
        self.date_format = date_format
        self.time_format = time_format
        self.include_timezone = include_timezone
        self.include_unix_timestamp = include_unix_timestamp
        self.default_timezone = default_timezone
        self._clock = clock
        super().__init__(enabled=enabled)

    def register_functions(self) -> None:
        zone_only = {
            "type": "object",
            "properties": {"timezone": _TIMEZONE_PARAMETER},
            "required": [],
        }
        self.add_function(
            "get_current_datetime",
            "Get a summary of the current time, date, weekday, month and year",
            zone_only,
            self._summary,
            "get_current_datetime('Asia/Tokyo')",
        )
        self.add_function(
            "get_current_time",
            "Get the current time of day",
            zone_only,
            lambda args: self._formatted(args, self.time_format),
            "get_current_time()",
        )
        self.add_function(
            "get_current_date",
            "Get today's date",
            zone_only,
            lambda args: self._formatted(args, self.date_format),
            "get_current_date('America/Chicago')",
        )
        self.add_function(
            "get_unix_timestamp",
            "Get the number of seconds since 1970-01-01 UTC",
            {"type": "object", "properties": {}, "required": []},
            self._timestamp,
            "get_unix_timestamp()",
        )

    def now(self, timezone_name: str | None = None) -> datetime:
        """Return the current time in *timezone_name* or the default zone.

        Raises:
            ValueError: If the timezone name is not a known IANA zone.
        """
        name = timezone_name or self.default_timezone
        current = self._clock()
        if not name:
            return current.astimezone()
        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            logger.warning("[%s] Unknown timezone requested: %r", self.name, name)
            raise ValueError(f"Unknown timezone: {name!r}") from exc
        return current.astimezone(zone)

    def describe(self, moment: datetime) -> str:
        """Render *moment* as the multi-line summary handed to the model."""
        lines = [
            "Current Time Information:",
            f"Time: {moment.strftime(self.time_format)}",
            f"Date: {moment.strftime(self.date_format)}",
            f"Day of Week: {moment.strftime('%A')}",
            f"Month: {moment.strftime('%B')}",
            f"Year: {moment.year}",
        ]
        if self.include_timezone:
            lines.append(f"Timezone: {_zone_label(moment)}")
        if self.include_unix_timestamp:
            lines.append(f"Unix Timestamp: {int(moment.timestamp())}")
        return "\n".join(lines)

    async def _summary(self, args: dict[str, Any]) -> str:
        return self.describe(self.now(args.get("timezone")))

    async def _formatted(self, args: dict[str, Any], pattern: str) -> str:
        moment = self.now(args.get("timezone"))
        return f"{moment.strftime(pattern)} ({_zone_label(moment)})"

    async def _timestamp(self, args: dict[str, Any]) -> str:
        return str(int(self._clock().timestamp()))


def _zone_label(moment: datetime) -> str:
    zone = moment.tzinfo
    if isinstance(zone, ZoneInfo):
        return zone.key
    return moment.tzname() or "local"

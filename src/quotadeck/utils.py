"""Small time and number helpers shared by the aggregation modules."""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round (halves go up, not to even)."""
    return int(math.floor(value + 0.5))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or epoch number into an aware datetime, or None.

    Naive ISO strings are taken as local time, matching how the dashboard
    interprets feed keys without an offset.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            ts = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Could not parse timestamp: {value}")
            return None
        if dt.tzinfo is None:
            dt = dt.astimezone()
        return dt
    return None


def local_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` (or the current time) as an aware local datetime."""
    if now is None:
        return datetime.now().astimezone()
    return now.astimezone()


def format_time_until(target: Any, now: Optional[datetime] = None) -> str:
    """Format the time left until ``target`` as a compact '1d 2h 30m' string."""
    dt = parse_timestamp(target)
    if dt is None:
        return "-"

    current = local_now(now)
    seconds = int((dt - current).total_seconds())
    if seconds <= 0:
        return "now"

    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, _ = divmod(seconds, 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def format_clock(dt: Optional[datetime]) -> str:
    """Local HH:MM label for a chart axis."""
    if dt is None:
        return "--:--"
    return dt.astimezone().strftime("%H:%M")

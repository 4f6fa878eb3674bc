from __future__ import annotations

import datetime as dt
import logging

from orgactivity.errors import InvalidWindowError
from orgactivity.models import ActivityWindow

logger = logging.getLogger(__name__)


def _utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def _parse_since(value: str) -> dt.date:
    s = value.strip()
    try:
        return dt.date.fromisoformat(s)
    except ValueError:
        pass
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return dt.datetime.fromisoformat(s).date()
    except ValueError as e:
        raise InvalidWindowError(f"Invalid since date: {value!r} (expected YYYY-MM-DD)") from e


def _parse_days(value: int | str) -> int:
    if isinstance(value, bool):
        raise InvalidWindowError(f"Invalid activity_days: {value!r}")
    try:
        days = int(str(value).strip())
    except ValueError as e:
        raise InvalidWindowError(f"Invalid activity_days: {value!r} (expected a whole number)") from e
    if days < 0:
        raise InvalidWindowError(f"Invalid activity_days: {days} (must not be negative)")
    return days


def resolve_window(
    since: str | None = None,
    activity_days: int | str | None = None,
    *,
    today: dt.date | None = None,
) -> ActivityWindow:
    """
    Resolve the activity window.

    An explicit `since` date always wins; otherwise the window starts
    `activity_days` calendar days before `today` (UTC).
    """
    if since is not None and str(since).strip():
        logger.info("Since date has been specified, using that instead of activity_days")
        return ActivityWindow(start=_parse_since(str(since)))

    if activity_days is None or (isinstance(activity_days, str) and not activity_days.strip()):
        raise InvalidWindowError("Either since or activity_days must be provided")

    days = _parse_days(activity_days)
    base = today or _utc_today()
    return ActivityWindow(start=base - dt.timedelta(days=days))

"""Reset-time estimation from agent output.

Each provider reports when a usage limit lifts in a different shape:

- a wall-clock time such as ``resets 4:30pm (UTC)``
- an absolute epoch (``resets_at``) or a countdown (``resets_in_seconds``)
- a relative duration such as ``resets after 2h30m``

Every estimator returns a WaitPlan and degrades to the fallback wait when the
output cannot be parsed or yields a non-positive wait. All times are UTC; a
naive ``now`` is treated as UTC.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from .constants import FALLBACK_WAIT_SECONDS
from .models import WaitPlan

CLOCK_RESET_PATTERN = re.compile(
    r"resets?\s+(?:at\s+)?[A-Za-z]*\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*\(?(UTC)?\)?",
    re.IGNORECASE,
)
RESETS_AT_PATTERN = re.compile(r'resets_at\\?"?[:\s]+(\d+)', re.IGNORECASE)
RESETS_IN_SECONDS_PATTERN = re.compile(r'resets_in_seconds\\?"?[:\s]+(\d+)', re.IGNORECASE)
DURATION_RESET_PATTERN = re.compile(
    r"resets?\s+(?:after\s+)?(\d+h)?(\d+m)?(\d+s)?",
    re.IGNORECASE,
)
DURATION_PART_PATTERN = re.compile(r"(\d+)([hms])", re.IGNORECASE)

_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}

# Longer digit runs are not a plausible reset value and are treated as absent
MAX_NUMBER_DIGITS = 18


def _parse_number(digits: str) -> int:
    if len(digits) > MAX_NUMBER_DIGITS:
        return 0
    return int(digits)


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def plan_after(
    now: datetime,
    wait_seconds: int,
    fallback_seconds: int = FALLBACK_WAIT_SECONDS,
) -> WaitPlan:
    """Build a plan that resumes wait_seconds after now.

    A wait too large to represent as a datetime falls back to fallback_seconds.
    """
    now = _as_utc(now)
    try:
        resume_at = now + timedelta(seconds=wait_seconds)
    except OverflowError:
        return fallback_plan(now, fallback_seconds)
    return WaitPlan(wait_seconds=wait_seconds, resume_at=resume_at)


def fallback_plan(now: datetime, fallback_seconds: int = FALLBACK_WAIT_SECONDS) -> WaitPlan:
    """Plan used when no reset time can be recovered from the output."""
    now = _as_utc(now)
    return WaitPlan(
        wait_seconds=fallback_seconds, resume_at=now + timedelta(seconds=fallback_seconds)
    )


def _plan_until(now: datetime, resume_at: datetime, fallback_seconds: int) -> WaitPlan:
    wait = int((resume_at - now).total_seconds())
    if wait <= 0:
        return fallback_plan(now, fallback_seconds)
    return WaitPlan(wait_seconds=wait, resume_at=resume_at)


def _to_24_hour(hour: int, marker: str) -> int:
    if marker == "am":
        return 0 if hour == 12 else hour
    if marker == "pm":
        return hour if hour == 12 else hour + 12
    return hour


def estimate_from_clock_time(
    output: str,
    now: datetime,
    buffer_seconds: int,
    fallback_seconds: int = FALLBACK_WAIT_SECONDS,
) -> WaitPlan:
    """Estimate the wait from a wall-clock reset time.

    The time is taken as today's UTC time of day, rolled to tomorrow when it
    is not strictly after ``now``, plus the buffer.

    Args:
        output: Agent output
        now: Current time
        buffer_seconds: Safety margin added after the reset time
        fallback_seconds: Wait used when no valid time is found

    Returns:
        WaitPlan for the next attempt

    """
    now = _as_utc(now)
    match = CLOCK_RESET_PATTERN.search(output)
    if not match:
        return fallback_plan(now, fallback_seconds)

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    if minute > 59:
        return fallback_plan(now, fallback_seconds)

    marker = (match.group(3) or "").strip().lower()
    converted = _to_24_hour(hour, marker)
    if not 0 <= converted <= 23:
        return fallback_plan(now, fallback_seconds)

    reset = now.replace(hour=converted, minute=minute, second=0, microsecond=0)
    if reset <= now:
        reset += timedelta(days=1)

    return _plan_until(now, reset + timedelta(seconds=buffer_seconds), fallback_seconds)


def estimate_from_reset_timestamp(
    output: str,
    now: datetime,
    buffer_seconds: int,
    fallback_seconds: int = FALLBACK_WAIT_SECONDS,
) -> WaitPlan:
    """Estimate the wait from ``resets_at`` or ``resets_in_seconds`` fields.

    A ``resets_at`` epoch wins when it still lies in the future after adding
    the buffer; otherwise ``resets_in_seconds`` is used. Keys may appear with
    JSON-escaped quotes.

    Args:
        output: Agent output
        now: Current time
        buffer_seconds: Safety margin added after the reset
        fallback_seconds: Wait used when neither field is usable

    Returns:
        WaitPlan for the next attempt

    """
    now = _as_utc(now)

    match = RESETS_AT_PATTERN.search(output)
    if match:
        epoch = _parse_number(match.group(1))
        if epoch > 0:
            try:
                resume_at: datetime | None = datetime.fromtimestamp(
                    epoch, tz=timezone.utc
                ) + timedelta(seconds=buffer_seconds)
            except (OverflowError, OSError, ValueError):
                resume_at = None
            if resume_at is not None:
                wait = int((resume_at - now).total_seconds())
                if wait > 0:
                    return WaitPlan(wait_seconds=wait, resume_at=resume_at)

    match = RESETS_IN_SECONDS_PATTERN.search(output)
    if match:
        seconds = _parse_number(match.group(1))
        if seconds > 0:
            return plan_after(now, seconds + buffer_seconds, fallback_seconds)

    return fallback_plan(now, fallback_seconds)


def parse_duration_seconds(text: str) -> int:
    """Sum ``<n>h``, ``<n>m`` and ``<n>s`` components of text."""
    total = 0
    for value, unit in DURATION_PART_PATTERN.findall(text.lower()):
        total += _parse_number(value) * _UNIT_SECONDS[unit]
    return total


def estimate_from_reset_duration(
    output: str,
    now: datetime,
    buffer_seconds: int,
    fallback_seconds: int = FALLBACK_WAIT_SECONDS,
) -> WaitPlan:
    """Estimate the wait from a relative ``resets after 1h2m3s`` duration.

    Only the first ``reset``/``resets`` occurrence is considered.

    Args:
        output: Agent output
        now: Current time
        buffer_seconds: Safety margin added after the duration
        fallback_seconds: Wait used when no positive duration is found

    Returns:
        WaitPlan for the next attempt

    """
    now = _as_utc(now)
    match = DURATION_RESET_PATTERN.search(output)
    if not match:
        return fallback_plan(now, fallback_seconds)

    duration_text = "".join(part or "" for part in match.groups())
    seconds = parse_duration_seconds(duration_text)
    if seconds <= 0:
        return fallback_plan(now, fallback_seconds)

    return plan_after(now, seconds + buffer_seconds, fallback_seconds)

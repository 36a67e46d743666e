"""Rate limiting and wait utilities.

Handles:
- GitHub API rate limit detection for ``gh`` calls
- Line-delimited JSON scanning of agent output
- Blocking, chunked waits with progress logging
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from typing import Any

from .constants import COUNTDOWN_INTERVAL_SECONDS
from .models import WaitPlan

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], None]


def parse_reset_epoch(reset_str: str) -> int | None:
    """Parse GitHub rate limit reset timestamp from various formats.

    Supports:
    - Unix epoch: "1234567890"
    - ISO 8601: "2024-01-15T12:30:45Z"
    - Human readable: "2024-01-15 12:30:45 +0000 UTC"

    Args:
        reset_str: Reset timestamp string

    Returns:
        Unix epoch timestamp or None if parsing fails

    """
    reset_str = reset_str.strip()

    if reset_str.isdigit():
        return int(reset_str)

    if "T" in reset_str and reset_str.endswith("Z"):
        try:
            dt = datetime.fromisoformat(reset_str.replace("Z", "+00:00"))
            return int(dt.timestamp())
        except ValueError:
            pass

    try:
        reset_str = re.sub(r"\s+[A-Z]{3,4}$", "", reset_str)
        dt = datetime.strptime(reset_str, "%Y-%m-%d %H:%M:%S %z")
        return int(dt.timestamp())
    except ValueError:
        pass

    logger.warning(f"Unable to parse reset timestamp: {reset_str}")
    return None


def detect_rate_limit(stderr: str) -> tuple[bool, int]:
    """Detect GitHub API rate limit from gh error output.

    Args:
        stderr: Standard error output from gh command

    Returns:
        Tuple of (is_rate_limited, reset_epoch_or_0)

    """
    match = re.search(
        r"API rate limit exceeded.*?(?:resets? at|reset time:)\s*([^\n]+)",
        stderr,
        re.IGNORECASE,
    )

    if match:
        reset_epoch = parse_reset_epoch(match.group(1).strip())
        if reset_epoch:
            logger.info(f"Rate limit detected, resets at epoch {reset_epoch}")
            return True, reset_epoch

    # Word boundary on 429 avoids matching port numbers
    if re.search(r"rate limit|too many requests|\b429\b", stderr, re.IGNORECASE):
        logger.warning("Rate limit detected but no reset time found")
        return True, 0

    return False, 0


def iter_json_objects(output: str) -> Iterator[dict[str, Any]]:
    """Yield each line of output that is a standalone JSON object.

    Lines that do not start with ``{`` or fail to parse are skipped.
    """
    for raw in output.split("\n"):
        line = raw.strip()
        if not line.startswith("{"):
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            yield payload


def _sleep_in_chunks(
    wait_seconds: int,
    interval: int,
    sleep: SleepFn,
    on_tick: Callable[[int], None],
) -> None:
    remaining = wait_seconds
    while remaining > 0:
        on_tick(remaining)
        chunk = min(interval, remaining)
        sleep(chunk)
        remaining -= chunk


def wait_for_reset(
    plan: WaitPlan,
    sleep: SleepFn = time.sleep,
    interval: int = COUNTDOWN_INTERVAL_SECONDS,
) -> None:
    """Block until an agent session limit should have reset.

    Sleeps in ``interval`` sized chunks, logging the remaining minutes before
    each chunk.

    Args:
        plan: Wait plan computed from the agent output
        sleep: Sleep function, injectable for tests
        interval: Seconds between progress lines

    """
    banner = "=" * 60
    logger.warning(banner, extra={"color": "yellow"})
    logger.warning(
        f"SESSION LIMIT HIT - waiting until {plan.resume_at.strftime('%Y-%m-%d %H:%M')} UTC "
        f"({plan.wait_seconds}s)",
        extra={"color": "yellow"},
    )
    logger.warning(banner, extra={"color": "yellow"})

    def _tick(remaining: int) -> None:
        logger.info(f"  waiting... {remaining // 60} minutes remaining", extra={"color": "yellow"})

    _sleep_in_chunks(plan.wait_seconds, interval, sleep, _tick)

    logger.info("Session limit should be reset. Resuming...", extra={"color": "green"})


def wait_until(
    epoch: int,
    reason: str = "rate limit",
    sleep: SleepFn = time.sleep,
    clock: Callable[[], float] = time.time,
) -> None:
    """Wait until the specified epoch timestamp.

    Args:
        epoch: Unix epoch timestamp to wait until
        reason: Description of why we're waiting
        sleep: Sleep function, injectable for tests
        clock: Epoch clock, injectable for tests

    """
    wait_seconds = max(0, epoch - int(clock()))

    if wait_seconds == 0:
        logger.debug(f"No wait needed for {reason}")
        return

    reset_time = datetime.fromtimestamp(epoch, tz=timezone.utc)
    logger.info(
        f"Waiting {wait_seconds / 60:.1f} minutes for {reason} "
        f"(until {reset_time.strftime('%H:%M:%S UTC')})"
    )

    def _tick(remaining: int) -> None:
        logger.debug(f"{remaining // 60} minutes remaining...")

    _sleep_in_chunks(wait_seconds, 60, sleep, _tick)

    logger.info("Wait complete, resuming operations")


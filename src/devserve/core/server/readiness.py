from __future__ import annotations

import logging
import time
from typing import Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 0.75


def is_http_responsive(url: str, *, timeout_seconds: float) -> bool:
    try:
        with urlopen(Request(url, method="GET"), timeout=timeout_seconds):
            return True
    except HTTPError:
        # Any HTTP response implies a server is listening.
        return True
    except (URLError, OSError, ValueError) as exc:
        logger.debug("probe %s failed: %s", url, exc)
        return False


def wait_healthy(
    url: str,
    interval: float,
    timeout: float,
    *,
    attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    should_abort: Callable[[], bool] | None = None,
) -> bool:
    """Poll ``url`` until it answers or ``timeout`` seconds have elapsed.

    Any HTTP status counts as reachable. Each attempt is bounded by
    ``min(attempt_timeout, remaining)``. Returns False only once the deadline
    has passed (or ``should_abort`` returned True) without a successful attempt.
    """
    interval = max(0.01, float(interval))
    deadline = time.monotonic() + max(0.0, float(timeout))
    attempts = 0
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        attempts += 1
        if is_http_responsive(url, timeout_seconds=max(0.05, min(float(attempt_timeout), remaining))):
            logger.info("%s reachable after %d attempt(s)", url, attempts)
            return True
        if should_abort is not None and should_abort():
            logger.info("stopped polling %s early", url)
            return False
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        time.sleep(min(interval, remaining))
    logger.info("%s not reachable within %.2fs (%d attempt(s))", url, timeout, attempts)
    return False


__all__ = ["is_http_responsive", "wait_healthy"]

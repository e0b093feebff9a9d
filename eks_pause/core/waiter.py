"""
Bounded polling for long-running state transitions.
"""
import logging
import threading
import time
from typing import Callable, Optional

from .exceptions import UserCancelled

logger = logging.getLogger(__name__)


def poll_until(
    condition: Callable[[], bool],
    timeout: float,
    interval: float,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    cancel_event: Optional[threading.Event] = None,
) -> bool:
    """Poll ``condition`` until it returns True or ``timeout`` seconds pass.

    Args:
        condition: Zero-argument callable checked on every attempt
        timeout: Maximum time to wait in seconds
        interval: Delay between attempts in seconds
        description: What is being waited for, used in log messages
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)
        cancel_event: When set, the wait is abandoned

    Returns:
        True if the condition was met, False on timeout. A timeout is logged
        as a warning and is not an error: callers carry on.

    Raises:
        UserCancelled: If ``cancel_event`` is set while waiting
    """
    deadline = clock() + timeout
    attempt = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise UserCancelled(f"Cancelled while waiting for {description}")

        attempt += 1
        try:
            if condition():
                logger.debug(f"{description}: ready after {attempt} attempt(s)")
                return True
        except Exception as e:
            logger.debug(f"{description}: check failed on attempt {attempt}: {e}")

        remaining = deadline - clock()
        if remaining <= 0:
            logger.warning(f"Timed out after {timeout:.0f}s waiting for {description}; continuing")
            return False

        sleep(min(interval, remaining))

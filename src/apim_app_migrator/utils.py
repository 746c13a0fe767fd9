import json
import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Throttle:
    """
    Minimum interval between throttled calls.

    The first ``wait()`` sleeps the full interval, later ones only what is left
    of it since the previous call. An interval of 0 disables throttling.
    """

    def __init__(self, min_interval: float,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None

    def wait(self) -> None:
        if self.min_interval <= 0:
            return
        if self._last is None:
            delay = self.min_interval
        else:
            delay = self.min_interval - (self._clock() - self._last)
        if delay > 0:
            logger.debug("throttling for %.2fs", delay)
            self._sleep(delay)
        self._last = self._clock()


def mask(value: Optional[str], keep: int = 4) -> str:
    """Hide all but the first ``keep`` characters of a secret."""
    if not value:
        return "****"
    if len(value) <= keep:
        return "****"
    return f"{value[:keep]}****"


SECRET_KEYS = frozenset({
    "clientSecret", "client_secret", "consumerSecret",
    "access_token", "refresh_token", "id_token", "password",
})


def redact(data: Any) -> Any:
    """Copy of a JSON document with the values of secret keys masked."""
    if isinstance(data, dict):
        return {
            k: mask(v if isinstance(v, str) else None) if k in SECRET_KEYS else redact(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(v) for v in data]
    return data


def pretty_json(data: Any) -> str:
    return json.dumps(data, indent=4, sort_keys=False, default=str)

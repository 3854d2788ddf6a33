# exchange/nonce.py
import threading
import uuid
from typing import Callable, Optional

from utils.logger import logger
from utils.time import utc_ms

# venue accepts nonces within a window around its clock; warn well before that
MAX_LEAD_MS = 1000


def make_cloid() -> str:
    """Random 16-byte client order id (0x + 32 hex chars)."""
    return "0x" + uuid.uuid4().hex


class NonceSource:
    """
    Strictly increasing, clock-derived nonces in milliseconds since the epoch.

    Each call returns max(clock, last + 1) under a lock, so concurrent callers
    never share a value and values follow issuance order. Nothing is persisted;
    monotonicity across restarts relies on the clock.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or utc_ms
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = self._clock()
            nonce = now if now > self._last else self._last + 1
            self._last = nonce
        if nonce - now > MAX_LEAD_MS:
            logger.warning(f"nonce {nonce} is {nonce - now}ms ahead of the clock")
        return nonce

    @property
    def last(self) -> int:
        return self._last

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass
class Bucket:
    tokens: float
    last_ts: float


class InMemoryRateLimiter:
    """
    Token bucket:
      capacity tokens; refill rate tokens/sec.

    Keyed by (caller_key, route_key). Per-process only; it throttles bid
    spam, it is not part of bid correctness.
    """
    def __init__(self, capacity: int, refill_per_sec: float):
        self.capacity = float(capacity)
        self.refill_per_sec = float(refill_per_sec)
        self._buckets: Dict[Tuple[str, str], Bucket] = {}
        self._lock = threading.Lock()

    def allow(self, caller_key: str, route_key: str, cost: float = 1.0) -> bool:
        now = time.monotonic()
        k = (caller_key, route_key)
        with self._lock:
            b = self._buckets.get(k)
            if b is None:
                b = Bucket(tokens=self.capacity, last_ts=now)
                self._buckets[k] = b

            # refill
            elapsed = max(0.0, now - b.last_ts)
            b.tokens = min(self.capacity, b.tokens + elapsed * self.refill_per_sec)
            b.last_ts = now

            if b.tokens >= cost:
                b.tokens -= cost
                return True
            return False

import threading
import time
from collections import deque


class ConnectionRateLimiter:
    """Rolling-window cap on new connections per remote address.

    Only refuses new connections; connections already admitted are never
    touched. Addresses whose hits have all aged out are forgotten.
    """

    def __init__(self, max_connections, window_sec, clock=time.monotonic):
        self.max_connections = max_connections
        self.window = window_sec
        self.clock = clock
        self._hits = {}
        self._last_sweep = None
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._hits)

    def _sweep(self, now):
        stale = [addr for addr, hits in self._hits.items() if now - hits[-1] >= self.window]
        for addr in stale:
            del self._hits[addr]
        self._last_sweep = now

    def allow(self, address):
        if self.max_connections <= 0:
            return True
        address = address or 'unknown'
        now = self.clock()
        with self._lock:
            if self._last_sweep is None or now - self._last_sweep >= self.window:
                self._sweep(now)
            hits = self._hits.get(address)
            if hits is None:
                hits = self._hits[address] = deque()
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) >= self.max_connections:
                return False
            hits.append(now)
            return True

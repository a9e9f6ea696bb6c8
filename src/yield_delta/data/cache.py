import time
from typing import Any, Callable, Dict, Tuple, Optional


class MemoryCache:
    def __init__(self, default_ttl: float = 30, clock: Callable[[], float] = time.time):
        self.store: Dict[str, Tuple[float, Any]] = {}
        self.default_ttl = default_ttl
        self.clock = clock

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        ttl = self.default_ttl if ttl is None else ttl
        self.store[key] = (self.clock() + ttl, value)

    def get(self, key: str) -> Optional[Any]:
        exp, val = self.store.get(key, (0, None))
        if exp and exp > self.clock(): return val
        if key in self.store: del self.store[key]
        return None

    def expire(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    def clear(self):
        self.store.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

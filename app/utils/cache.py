# app/utils/cache.py
import threading
import time
from typing import Any, Callable, Dict, List, Tuple


class TTLCache:
    """
    Cache klucz -> wartosc w pamieci procesu.

    - kazdy wpis ma wlasny TTL, wygasanie sprawdzane leniwie przy get
    - invalidate po kluczu albo po prefiksie (np. wszystko dla klienta)
    - nie jest zrodlem prawdy, kazda wartosc da sie odtworzyc z bazy
    """

    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default

            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_by_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for k in expired:
                del self._entries[k]

            keys: List[str] = list(self._entries.keys())
            return {"size": len(keys), "keys": keys}

import json
import time
import logging
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def make_cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Deterministic key: endpoint plus the parameters serialized with sorted keys."""
    return f"{endpoint}:{json.dumps(params or {}, sort_keys=True, separators=(',', ':'))}"


class ResponseCache:
    """In-memory store of upstream JSON responses with expiry checked on read.

    Entries are never evicted except when a read finds them older than the
    timeout. Writes simply overwrite, so concurrent writers at worst cost an
    extra upstream call.
    """

    def __init__(self, timeout_seconds: float, enabled: bool = True,
                 clock: Callable[[], float] = time.monotonic):
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        data, stored_at = entry
        if self._clock() - stored_at > self.timeout_seconds:
            self._entries.pop(key, None)
            logger.debug(f"[CACHE] Expired: {key[:80]}")
            return None
        logger.debug(f"[CACHE] Hit: {key[:80]}")
        return data

    def set(self, key: str, data: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = (data, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

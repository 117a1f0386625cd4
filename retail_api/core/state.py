"""
Process-wide mutable state

Both objects are created once in create_app() and hung off app.state.
Nothing here survives a restart.
"""

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Tuple
import uuid

from limits import RateLimitItemPerHour
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter


OverrideKey = Tuple[str, Optional[uuid.UUID]]


class FlagOverrideStore:
    """Runtime feature-flag overrides keyed by (flag, tenant_id); tenant_id None is platform scope"""

    def __init__(self):
        self._lock = Lock()
        self._overrides: Dict[OverrideKey, Tuple[bool, datetime]] = {}

    def set(self, flag: str, value: Optional[bool], tenant_id: Optional[uuid.UUID] = None) -> None:
        """Set an override; a value of None clears it"""
        key = (flag, tenant_id)
        with self._lock:
            if value is None:
                self._overrides.pop(key, None)
            else:
                self._overrides[key] = (bool(value), datetime.now(timezone.utc))

    def get(self, flag: str, tenant_id: Optional[uuid.UUID] = None) -> Optional[bool]:
        with self._lock:
            entry = self._overrides.get((flag, tenant_id))
        return None if entry is None else entry[0]

    def items(self) -> List[dict]:
        with self._lock:
            snapshot = list(self._overrides.items())
        return [
            {"flag": flag, "tenant_id": tenant_id, "value": value, "set_at": set_at}
            for (flag, tenant_id), (value, set_at) in sorted(snapshot, key=lambda kv: (kv[0][0], str(kv[0][1] or "")))
        ]

    def clear(self) -> None:
        with self._lock:
            self._overrides.clear()


class ChangeRateLimiter:
    """Per-key hourly quota on a moving window

    The quota is checked with allowed() and only consumed by record(),
    so a change that fails after the check does not use it up.
    """

    def __init__(self, per_hour: int, storage: Optional[Storage] = None):
        self.item = RateLimitItemPerHour(per_hour)
        self._storage = storage or MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self._storage)

    def allowed(self, key: str) -> bool:
        return self._strategy.test(self.item, key)

    def record(self, key: str) -> bool:
        """Consume one change; False when the key is already over its quota"""
        return self._strategy.hit(self.item, key)

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._storage.reset()
        else:
            self._strategy.clear(self.item, key)

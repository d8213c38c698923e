"""
Metric state cache - last observed value per tracked counter.

The cache lives for the whole process and is shared by every server and
query. Keys are namespaced by server id so identically named columns on
two servers never share a baseline.

Nothing is ever evicted; the number of entries is bounded by the number of
distinct counters the configured queries can produce.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from .values import TypedValue

logger = logging.getLogger("sqlbeat.metrics.state")


@dataclass(frozen=True)
class MetricSnapshot:
    """Value of one counter at one point in time"""
    value: TypedValue
    observed_at: datetime


class MetricStateCache:
    """Thread-safe store of the latest snapshot per (server, metric key)"""

    def __init__(self) -> None:
        self._snapshots: Dict[Tuple[str, str], MetricSnapshot] = {}
        self._lock = threading.Lock()

    def record(self, namespace: str, key: str, snapshot: MetricSnapshot) -> Optional[MetricSnapshot]:
        """
        Store `snapshot` and return the one it replaces.

        Returns None on the first sighting of a key. An observation older
        than the stored snapshot is not stored; the newer snapshot is kept
        and returned so the caller can notice the reordering.
        """
        with self._lock:
            previous = self._snapshots.get((namespace, key))
            if previous is not None and snapshot.observed_at < previous.observed_at:
                logger.debug("ignoring stale observation for %s/%s", namespace, key)
                return previous
            self._snapshots[(namespace, key)] = snapshot
            return previous

    def get(self, namespace: str, key: str) -> Optional[MetricSnapshot]:
        with self._lock:
            return self._snapshots.get((namespace, key))

    def for_server(self, server_id: str) -> "ServerMetricState":
        return ServerMetricState(self, server_id)

    def __contains__(self, item: Tuple[str, str]) -> bool:
        with self._lock:
            return item in self._snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)


class ServerMetricState:
    """View of the cache scoped to one server"""

    def __init__(self, cache: MetricStateCache, server_id: str):
        self.cache = cache
        self.server_id = server_id

    def record(self, key: str, snapshot: MetricSnapshot) -> Optional[MetricSnapshot]:
        return self.cache.record(self.server_id, key, snapshot)

    def get(self, key: str) -> Optional[MetricSnapshot]:
        return self.cache.get(self.server_id, key)

    def __contains__(self, key: str) -> bool:
        return (self.server_id, key) in self.cache

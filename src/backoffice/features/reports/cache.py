"""
In-process cache of computed report payloads.

Entries are keyed by a fingerprint of (report type, filters). Two requests
with the same type and equivalent filters share one computation; results are
never invalidated, only pushed out by capacity.

Eviction is first-in-first-out: lookups do not refresh an entry, and
re-storing an existing key replaces the value but keeps its place in line.
"""

import json
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Union

from ...core.config import REPORT_CACHE_MAX_ENTRIES
from .models import ReportType
from .schemas import ReportData, ReportFilters

logger = logging.getLogger(__name__)


def fingerprint(report_type: Union[ReportType, str], filters: Union[ReportFilters, Mapping[str, Any], None]) -> str:
    """Canonical cache key for a (type, filters) pair.

    Unset filters and empty lists are dropped and list filters are sorted, so
    the key does not depend on key order or on the order values were listed in.
    """
    if isinstance(filters, ReportFilters):
        payload = filters.to_storage()
    else:
        payload = ReportFilters.model_validate(dict(filters or {})).to_storage()

    canonical = {
        key: sorted(value) if isinstance(value, list) else value
        for key, value in payload.items()
        if value != []
    }
    return f"{ReportType(report_type).value}:" + json.dumps(
        canonical, sort_keys=True, separators=(",", ":")
    )


class ReportResultCache:
    """Bounded FIFO mapping of fingerprint -> report payload."""

    def __init__(self, max_entries: int = REPORT_CACHE_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: "OrderedDict[str, ReportData]" = OrderedDict()
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> Optional[ReportData]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
            else:
                self._hits += 1
            return value

    def put(self, key: str, value: ReportData) -> Optional[str]:
        """Store ``value`` under ``key``.

        Returns the key that was evicted to make room, if any.
        """
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                return None

            self._entries[key] = value
            if len(self._entries) <= self._max_entries:
                return None

            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1

        logger.debug("Evicted oldest report cache entry %s", evicted_key)
        return evicted_key

    def keys(self) -> List[str]:
        """Keys in insertion order, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

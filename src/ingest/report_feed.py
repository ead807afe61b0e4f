"""
Cached report feed for map readers
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from cachetools import TTLCache

from src.core.config import settings

logger = logging.getLogger(__name__)

FEED_KEY = "reports"


class ReportFeed:
    """
    Time-limited cache of the current reports.

    The ingestion service invalidates it after every stored report so the
    next read includes the new row.
    """

    def __init__(
        self,
        store,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize feed.

        Args:
            store: Record store with ``list_reports()``
            ttl_seconds: Cache lifetime
            clock: Monotonic time source
        """
        self.store = store
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.feed_cache_ttl_seconds
        self._cache = TTLCache(maxsize=1, ttl=self.ttl_seconds, timer=clock)
        self.version = 0

    @property
    def is_fresh(self) -> bool:
        return FEED_KEY in self._cache

    def get_reports(self) -> List[Dict[str, Any]]:
        """Current reports as dictionaries, newest first."""
        reports = self._cache.get(FEED_KEY)
        if reports is None:
            reports = [report.to_dict() for report in self.store.list_reports()]
            self._cache[FEED_KEY] = reports
            logger.debug(f"Report feed reloaded: {len(reports)} reports")
        return reports

    def invalidate(self) -> None:
        self._cache.clear()
        self.version += 1
        logger.debug(f"Report feed invalidated (version {self.version})")

"""Background jobs that feed the dashboard event queue."""

from workers.cache_builder import CacheBuilder
from workers.poller import DataPoller

__all__ = ["CacheBuilder", "DataPoller"]

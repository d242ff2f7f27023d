"""feedsync - client-side synchronization layer for a campus social feed.

Query caching with stale-while-revalidate, optimistic mutations with
rollback, rule-driven cache invalidation and realtime event handling.
"""

from __future__ import annotations

from feedsync.shared.constants.application import Application

__version__ = Application.VERSION

__all__ = ["__version__"]

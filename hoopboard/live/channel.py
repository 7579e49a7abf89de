"""In-process change notifications.

Writers publish ``(table, event, row)`` after a commit; live views
subscribe with an optional event and row filter. Delivery is best effort:
a subscriber that raises is logged and skipped, and nothing is replayed,
which is why live views also poll.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str, Dict[str, Any]], None]


class Subscription:

    def __init__(self, feed: 'ChangeFeed', table: str, callback: ChangeCallback,
                 event: Optional[str] = None, match: Optional[Callable[[Dict[str, Any]], bool]] = None):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.event = event
        self.match = match
        self.active = True

    def wants(self, table: str, event: str, row: Dict[str, Any]) -> bool:
        if not self.active or table != self.table:
            return False
        if self.event is not None and event != self.event:
            return False
        if self.match is not None and not self.match(row):
            return False
        return True

    def unsubscribe(self) -> None:
        self.feed._remove(self)


class ChangeFeed:

    def __init__(self):
        self._lock = threading.RLock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, table: str, callback: ChangeCallback, *, event: Optional[str] = None,
                  match: Optional[Callable[[Dict[str, Any]], bool]] = None) -> Subscription:
        sub = Subscription(self, table, callback, event=event, match=match)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def publish(self, table: str, event: str, row: Dict[str, Any]) -> int:
        """Deliver to matching subscribers; returns how many were called."""
        with self._lock:
            subscribers = [s for s in self._subscriptions if s.wants(table, event, row)]
        delivered = 0
        for sub in subscribers:
            try:
                sub.callback(table, event, row)
                delivered += 1
            except Exception:
                logger.exception(f"[feed-error] table={table} event={event} subscriber failed")
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)


# Process-wide feed shared by the API and live views
feed = ChangeFeed()

# isp_billing/core/changes.py
"""
Realtime change feed.

Subscribers register a callback per table and are told *that* the table
changed, never *what* changed: consumers are expected to re-list. Changes are
published after a successful commit, driven by SQLAlchemy session events, so
every service that commits through a Session feeds it automatically.
"""

import logging
import threading
from collections import defaultdict
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]

_PENDING_KEY = "changed_tables"


class ChangeFeed:
    def __init__(self):
        self._subscribers: dict[str, list[ChangeCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        """
        Registers `callback` for changes on `table` ("*" for every table).
        Returns a function that removes the subscription.
        """
        with self._lock:
            self._subscribers[table].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers[table]:
                    self._subscribers[table].remove(callback)

        return unsubscribe

    def publish(self, table: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(table, [])) + list(self._subscribers.get("*", []))

        for callback in callbacks:
            try:
                callback(table)
            except Exception:
                # A broken listener must not undo a committed write
                logger.exception(f"Change listener failed for table '{table}'")

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


change_feed = ChangeFeed()


@event.listens_for(Session, "after_flush")
def _collect_changed_tables(session, flush_context):
    tables = session.info.setdefault(_PENDING_KEY, set())
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        table_name = getattr(obj, "__tablename__", None)
        if table_name:
            tables.add(table_name)


@event.listens_for(Session, "after_commit")
def _publish_changed_tables(session):
    tables = session.info.pop(_PENDING_KEY, set())
    for table in sorted(tables):
        change_feed.publish(table)


@event.listens_for(Session, "after_rollback")
def _discard_changed_tables(session):
    session.info.pop(_PENDING_KEY, None)

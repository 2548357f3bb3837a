"""Live recipient feed.

The database is the source of truth. Observers get the full record set on
subscribe and again after every change made through the store. In-flight
``Generating``/``Sending`` states live only in :class:`TransientStatusBoard`
and are overlaid on the snapshot; the next persisted update for a record
clears its overlay.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from flask import current_app

from ..shared.statuses import TRANSIENT_STATUSES

logger = logging.getLogger("certsend.store")

Snapshot = list[dict]
Observer = Callable[[Snapshot], None]


class TransientStatusBoard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[int, str] = {}

    def set(self, recipient_id: int, status: str) -> None:
        if status not in TRANSIENT_STATUSES:
            raise ValueError(f"{status!r} is not a transient status")
        with self._lock:
            self._states[recipient_id] = status

    def clear(self, recipient_ids: Iterable[int]) -> None:
        with self._lock:
            for rid in recipient_ids:
                self._states.pop(rid, None)

    def clear_all(self) -> None:
        with self._lock:
            self._states.clear()

    def get(self, recipient_id: int) -> str | None:
        with self._lock:
            return self._states.get(recipient_id)

    def overlay(self, records: Snapshot) -> Snapshot:
        with self._lock:
            states = dict(self._states)
        if not states:
            return records
        merged = []
        for record in records:
            status = states.get(record["id"])
            merged.append({**record, "status": status} if status else record)
        return merged


class RecipientFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snapshot)
            except Exception:
                # subscribers that raise are dropped
                logger.exception("[FEED] observer failed; unsubscribing")
                with self._lock:
                    if observer in self._observers:
                        self._observers.remove(observer)

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)


def get_feed() -> RecipientFeed:
    return current_app.extensions.setdefault("certsend.feed", RecipientFeed())


def get_board() -> TransientStatusBoard:
    return current_app.extensions.setdefault(
        "certsend.transient", TransientStatusBoard()
    )

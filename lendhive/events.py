"""
Inventory change bus and the watchers that hang off it.

The ledger calls `InventoryChangeBus.notify(copy, previous)` after it has
committed a status change, passing the status the copy held before it.
Handlers run synchronously in subscription order; one failing handler is
logged and the rest still run.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
import logging
import threading

from .domain import CopyStatus, ItemCopy
from .repositories import CatalogRepo, PatronRepo, ReservationRepo

logger = logging.getLogger(__name__)

InventoryHandler = Callable[[ItemCopy, Optional[CopyStatus]], None]


class InventoryChangeBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: List[InventoryHandler] = []

    def subscribe(self, handler: InventoryHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: InventoryHandler) -> None:
        with self._lock:
            self._handlers.remove(handler)

    def notify(self, copy: ItemCopy, previous: Optional[CopyStatus] = None) -> int:
        """Dispatch `copy` to every handler; returns how many of them failed."""
        with self._lock:
            handlers = list(self._handlers)
        failures = 0
        for handler in handlers:
            try:
                handler(copy, previous)
            except Exception:
                failures += 1
                logger.exception(
                    "inventory handler %r failed for copy=%s", handler, copy.copy_id
                )
        return failures


class AvailabilityCounter:
    """Cached count of AVAILABLE copies per work, refreshed on each change."""

    def __init__(self, catalog: CatalogRepo) -> None:
        self.catalog = catalog
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}

    def __call__(self, copy: ItemCopy, previous: Optional[CopyStatus] = None) -> None:
        with self._lock:
            self._counts[copy.work_id] = self.catalog.count_available(copy.work_id)

    def available(self, work_id: str) -> int:
        with self._lock:
            return self._counts.get(work_id, 0)


@dataclass
class AuditEntry:
    at: datetime
    copy_id: str
    work_id: str
    previous: Optional[CopyStatus]
    status: CopyStatus


class AuditTrail:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entries: List[AuditEntry] = []

    def __call__(self, copy: ItemCopy, previous: Optional[CopyStatus] = None) -> None:
        entry = AuditEntry(
            at=datetime.now(),
            copy_id=copy.copy_id,
            work_id=copy.work_id,
            previous=previous,
            status=copy.status,
        )
        with self._lock:
            self.entries.append(entry)
        logger.info(
            "inventory change copy=%s %s -> %s",
            copy.copy_id,
            previous.name if previous else None,
            entry.status.name,
        )

    def for_copy(self, copy_id: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self.entries if e.copy_id == copy_id]


# ---- outbound notification channel


class LogNotifier:
    """Writes outbound messages to the log instead of delivering them."""

    def notify(self, address: str, subject: str, body: str) -> None:
        logger.info("notify to=%s subject=%r body=%r", address, subject, body)


class OutboxNotifier:
    """Keeps outbound messages in memory, newest last."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    def notify(self, address: str, subject: str, body: str) -> None:
        self.sent.append((address, subject, body))


class WaitingPatronNotifier:
    def __init__(
        self,
        catalog: CatalogRepo,
        patrons: PatronRepo,
        reservations: ReservationRepo,
        notifier,
    ) -> None:
        self.catalog = catalog
        self.patrons = patrons
        self.reservations = reservations
        self.notifier = notifier

    def __call__(self, copy: ItemCopy, previous: Optional[CopyStatus] = None) -> None:
        # only a move into AVAILABLE frees a copy for the waiting line
        if copy.status != CopyStatus.AVAILABLE or previous == CopyStatus.AVAILABLE:
            return
        work = self.catalog.get_work(copy.work_id)
        title = work.title if work else copy.work_id
        for r in self.reservations.list_pending_for_work(copy.work_id):
            patron = self.patrons.get(r.patron_id)
            if patron is None:
                logger.warning(
                    "reservation %s points at unknown patron %s",
                    r.reservation_id,
                    r.patron_id,
                )
                continue
            self.notifier.notify(
                patron.email,
                "Book Available",
                f"The book '{title}' is now available.",
            )

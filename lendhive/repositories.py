from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Optional
import threading

from .domain import (
    Patron,
    Work,
    ItemCopy,
    CopyStatus,
    LoanRecord,
    LoanStatus,
    Reservation,
    ReservationStatus,
)


class KeyedLocks:
    """One lock per key, created on first use.

    The map lock only guards creation of the per-key locks; callers hold the
    per-key lock for their read-check-write sequence.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


class PatronRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._patrons: Dict[str, Patron] = {}

    def add(self, patron: Patron) -> None:
        with self._lock:
            self._patrons[patron.patron_id] = patron

    def get(self, patron_id: str) -> Optional[Patron]:
        with self._lock:
            return self._patrons.get(patron_id)

    def list_all(self) -> List[Patron]:
        with self._lock:
            return list(self._patrons.values())


class CatalogRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._works: Dict[str, Work] = {}
        self._copies: Dict[str, ItemCopy] = {}

    # works
    def add_work(self, work: Work) -> None:
        with self._lock:
            self._works[work.work_id] = work

    def get_work(self, work_id: str) -> Optional[Work]:
        with self._lock:
            return self._works.get(work_id)

    def list_works(self) -> List[Work]:
        with self._lock:
            return list(self._works.values())

    # copies
    def add_copy(self, copy: ItemCopy) -> None:
        with self._lock:
            self._copies[copy.copy_id] = copy

    def get_copy(self, copy_id: str) -> Optional[ItemCopy]:
        with self._lock:
            return self._copies.get(copy_id)

    def list_copies(self) -> List[ItemCopy]:
        with self._lock:
            return list(self._copies.values())

    def list_copies_for_work(self, work_id: str) -> List[ItemCopy]:
        with self._lock:
            return [c for c in self._copies.values() if c.work_id == work_id]

    def count_available(self, work_id: str) -> int:
        return sum(
            1
            for c in self.list_copies_for_work(work_id)
            if c.status == CopyStatus.AVAILABLE
        )


class LoanRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._loans: Dict[str, LoanRecord] = {}

    def add(self, loan: LoanRecord) -> None:
        with self._lock:
            self._loans[loan.loan_id] = loan

    def get(self, loan_id: str) -> Optional[LoanRecord]:
        with self._lock:
            return self._loans.get(loan_id)

    def list_all(self) -> List[LoanRecord]:
        with self._lock:
            return list(self._loans.values())

    def list_active(self) -> List[LoanRecord]:
        return [l for l in self.list_all() if l.status == LoanStatus.ACTIVE]

    def list_by_patron(self, patron_id: str) -> List[LoanRecord]:
        loans = [l for l in self.list_all() if l.patron_id == patron_id]
        return sorted(loans, key=lambda l: l.checkout_at)

    def list_active_by_copy(self, copy_id: str) -> List[LoanRecord]:
        return [l for l in self.list_active() if l.copy_id == copy_id]


class ReservationRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._reservations: Dict[str, Reservation] = {}
        self._last_sequence = 0

    def next_sequence(self) -> int:
        with self._lock:
            self._last_sequence += 1
            return self._last_sequence

    def add(self, r: Reservation) -> None:
        with self._lock:
            self._reservations[r.reservation_id] = r
            self._last_sequence = max(self._last_sequence, r.sequence)

    def get(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            return self._reservations.get(reservation_id)

    def list_all(self) -> List[Reservation]:
        with self._lock:
            return list(self._reservations.values())

    def list_pending(self) -> List[Reservation]:
        return [r for r in self.list_all() if r.status == ReservationStatus.PENDING]

    def list_pending_for_work(self, work_id: str) -> List[Reservation]:
        items = [r for r in self.list_pending() if r.work_id == work_id]
        # FIFO by reservation time
        return sorted(items, key=lambda r: (r.reserved_at, r.sequence))

    def list_pending_by_patron(self, patron_id: str) -> List[Reservation]:
        return [r for r in self.list_pending() if r.patron_id == patron_id]


class LibraryState:
    """
    Explicit handle on every entity collection plus the per-entity locks.

    Built once and passed to the services that need it.
    """

    def __init__(self) -> None:
        self.patrons = PatronRepo()
        self.catalog = CatalogRepo()
        self.loans = LoanRepo()
        self.reservations = ReservationRepo()

        self.patron_locks = KeyedLocks()
        self.copy_locks = KeyedLocks()
        self.work_locks = KeyedLocks()

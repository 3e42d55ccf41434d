"""
Waiting-line bookkeeping for reserved works.

The queue manager only computes positions. The ledger decides when to call
it and applies the returned assignments to its own records.
"""

from __future__ import annotations
from typing import Iterable, List, Tuple

from .domain import Reservation, ReservationStatus


class ReservationQueue:
    def next_position(self, pending: Iterable[Reservation]) -> int:
        return sum(1 for r in pending if r.status == ReservationStatus.PENDING) + 1

    def order(self, pending: Iterable[Reservation]) -> List[Reservation]:
        items = [r for r in pending if r.status == ReservationStatus.PENDING]
        return sorted(items, key=lambda r: (r.reserved_at, r.sequence))

    def repack(self, pending: Iterable[Reservation]) -> List[Tuple[Reservation, int]]:
        """Assign 1..N to the still-pending reservations of one work, oldest first."""
        return [(r, pos) for pos, r in enumerate(self.order(pending), start=1)]

    def is_contiguous(self, pending: Iterable[Reservation]) -> bool:
        positions = [r.queue_position for r in self.order(pending)]
        return positions == list(range(1, len(positions) + 1))

from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .config import LendingConfig
from .domain import (
    Condition,
    CopyStatus,
    LoanRecord,
    Patron,
    PatronTier,
    Reservation,
    Work,
)
from .events import (
    AuditTrail,
    AvailabilityCounter,
    InventoryChangeBus,
    LogNotifier,
    WaitingPatronNotifier,
)
from .repositories import LibraryState
from .services import CatalogService, LendingLedger, PatronService
from .snapshot import load_snapshot, save_snapshot
from .waitlist import ReservationQueue


class LibrarySystem:
    """
    A simple facade that wires state + services + watchers and offers a compact API.
    """

    def __init__(
        self,
        state: Optional[LibraryState] = None,
        config: Optional[LendingConfig] = None,
        notifier=None,
    ) -> None:
        self.config = config or LendingConfig()
        self.state = state or LibraryState()
        self.notifier = notifier or LogNotifier()

        # services
        self.patron_service = PatronService(self.state)
        self.catalog = CatalogService(self.state)
        self.bus = InventoryChangeBus()
        self.ledger = LendingLedger(
            self.state,
            self.patron_service,
            self.catalog,
            self.bus,
            queue=ReservationQueue(),
            config=self.config,
        )

        # watchers, in dispatch order
        self.availability = AvailabilityCounter(self.state.catalog)
        self.audit = AuditTrail()
        self.waiting_patrons = WaitingPatronNotifier(
            self.state.catalog, self.state.patrons, self.state.reservations, self.notifier
        )
        self.bus.subscribe(self.availability)
        self.bus.subscribe(self.audit)
        self.bus.subscribe(self.waiting_patrons)

    # ---- persistence
    def save(self, path: Union[str, Path]) -> Path:
        return save_snapshot(self.state, path)

    @classmethod
    def load(
        cls, path: Union[str, Path], config: Optional[LendingConfig] = None, notifier=None
    ) -> "LibrarySystem":
        return cls(state=load_snapshot(path), config=config, notifier=notifier)

    # ---- patron module
    def register_patron(
        self, name: str, email: str, tier: PatronTier = PatronTier.STANDARD
    ) -> Patron:
        return self.patron_service.register(name, email, tier)

    def deactivate_patron(self, patron_id: str) -> Patron:
        return self.patron_service.deactivate(patron_id)

    # ---- catalog module
    def add_work(
        self,
        title: str,
        author: str,
        isbn: str,
        copies: int = 1,
        condition: Union[Condition, str] = Condition.GOOD,
    ) -> Work:
        return self.catalog.add_work(title, author, isbn, copies, condition)

    def report_inventory(self) -> List[Tuple[Work, int, int]]:
        return self.catalog.report_inventory()

    # ---- circulation module
    def checkout(
        self, patron_id: str, copy_id: str, due_at: Optional[datetime] = None
    ) -> LoanRecord:
        return self.ledger.checkout(patron_id, copy_id, due_at)

    def return_item(self, loan_id: str) -> LoanRecord:
        return self.ledger.return_item(loan_id)

    def reserve(self, patron_id: str, work_id: str) -> Reservation:
        return self.ledger.reserve(patron_id, work_id)

    def cancel_reservation(self, reservation_id: str) -> Reservation:
        return self.ledger.cancel_reservation(reservation_id)

    def set_copy_status(self, copy_id: str, status: CopyStatus):
        return self.ledger.set_copy_status(copy_id, status)

    # ---- periodic jobs
    def run_sweeps(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Returns (expired reservations, loans with fees recomputed)."""
        expired = self.ledger.process_expired_reservations(now)
        overdue = self.ledger.process_overdue_loans(now)
        return len(expired), len(overdue)

    # ---- reporting
    def report_overdue(self) -> List[LoanRecord]:
        return self.ledger.overdue_loans()

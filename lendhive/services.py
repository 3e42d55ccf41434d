from __future__ import annotations
from datetime import datetime, timedelta
from typing import List, Optional, Tuple, Union
import logging
import re
import uuid

from .config import LendingConfig
from .domain import (
    PatronTier,
    Patron,
    Work,
    Condition,
    ItemCopy,
    CopyStatus,
    LoanRecord,
    LoanStatus,
    Reservation,
    ReservationStatus,
)
from .errors import BusinessRuleViolation, NotFound, ValidationFailure
from .events import InventoryChangeBus
from .fees import calculate_fee, policy_for_tier
from .repositories import LibraryState
from .waitlist import ReservationQueue

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@(.+)$")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


class PatronService:
    """Patron directory and borrowing-eligibility gate."""

    def __init__(self, state: LibraryState) -> None:
        self.state = state

    def register(
        self, name: str, email: str, tier: Union[PatronTier, str] = PatronTier.STANDARD
    ) -> Patron:
        if not name or not name.strip():
            raise ValidationFailure("Name cannot be empty")
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise ValidationFailure(f"Invalid email: {email!r}")
        tier = self._parse_tier(tier)

        email = email.strip()
        for existing in self.state.patrons.list_all():
            if existing.active and existing.email.lower() == email.lower():
                raise BusinessRuleViolation(f"Patron email {email} already exists")

        p = Patron(patron_id=_new_id("pat"), name=name.strip(), email=email, tier=tier)
        self.state.patrons.add(p)
        logger.info("registered patron=%s tier=%s", p.patron_id, tier.name)
        return p

    @staticmethod
    def _parse_tier(tier: Union[PatronTier, str]) -> PatronTier:
        if isinstance(tier, PatronTier):
            return tier
        try:
            return PatronTier[str(tier).strip().upper()]
        except KeyError:
            raise ValidationFailure(f"Invalid patron tier: {tier}") from None

    def get(self, patron_id: str) -> Patron:
        p = self.state.patrons.get(patron_id)
        if p is None:
            raise NotFound(f"Patron {patron_id} not found")
        return p

    def deactivate(self, patron_id: str) -> Patron:
        p = self.get(patron_id)
        with self.state.patron_locks.hold(patron_id):
            if p.current_loans:
                raise BusinessRuleViolation("Cannot deactivate patron with active loans")
            p.active = False
        logger.info("deactivated patron=%s", patron_id)
        return p

    def is_eligible_for_borrowing(self, patron_id: str) -> bool:
        p = self.state.patrons.get(patron_id)
        if p is None:
            return False
        return p.active and len(p.current_loans) < p.tier.max_loans


class CatalogService:
    def __init__(self, state: LibraryState) -> None:
        self.catalog = state.catalog

    def add_work(
        self,
        title: str,
        author: str,
        isbn: str,
        copies: int = 1,
        condition: Union[Condition, str] = Condition.GOOD,
    ) -> Work:
        condition = self._parse_condition(condition)
        if not title or not title.strip():
            raise ValidationFailure("Title cannot be empty")
        w = Work(work_id=_new_id("wrk"), title=title, author=author, isbn=isbn)
        self.catalog.add_work(w)
        for _ in range(copies):
            self.add_copy(w.work_id, condition=condition)
        return w

    def add_copy(
        self,
        work_id: str,
        barcode: Optional[str] = None,
        condition: Union[Condition, str] = Condition.GOOD,
    ) -> ItemCopy:
        condition = self._parse_condition(condition)
        self.get_work(work_id)
        c = ItemCopy(copy_id=_new_id("cpy"), work_id=work_id, condition=condition)
        c.barcode = barcode or c.copy_id.upper()
        self.catalog.add_copy(c)
        return c

    def update_condition(
        self, copy_id: str, condition: Union[Condition, str]
    ) -> ItemCopy:
        c = self.get_copy(copy_id)
        c.condition = self._parse_condition(condition)
        logger.info("copy=%s condition=%s", copy_id, c.condition.name)
        return c

    @staticmethod
    def _parse_condition(condition: Union[Condition, str]) -> Condition:
        if isinstance(condition, Condition):
            return condition
        try:
            return Condition[str(condition).strip().upper()]
        except KeyError:
            raise ValidationFailure(f"Invalid condition: {condition}") from None

    def get_work(self, work_id: str) -> Work:
        w = self.catalog.get_work(work_id)
        if w is None:
            raise NotFound(f"Work {work_id} not found")
        return w

    def get_copy(self, copy_id: str) -> ItemCopy:
        c = self.catalog.get_copy(copy_id)
        if c is None:
            raise NotFound(f"Item copy {copy_id} not found")
        return c

    def copies_for_work(self, work_id: str) -> List[ItemCopy]:
        return self.catalog.list_copies_for_work(work_id)

    def available_copies(self, work_id: str) -> List[str]:
        return [c.copy_id for c in self.copies_for_work(work_id) if c.is_available()]

    def report_inventory(self) -> List[Tuple[Work, int, int]]:
        """
        Returns tuples of (Work, total_copies, available_copies)
        """
        report: List[Tuple[Work, int, int]] = []
        for work in self.catalog.list_works():
            copies = self.catalog.list_copies_for_work(work.work_id)
            available = sum(1 for c in copies if c.is_available())
            report.append((work, len(copies), available))
        return report


class LendingLedger:
    """
    Owns the checkout / return / reservation lifecycle.

    Copy status and loan / reservation state only change here. Each
    read-check-write runs while holding the lock of the entity it touches:
    patron then copy for loans, the work for its waiting line.
    """

    def __init__(
        self,
        state: LibraryState,
        patrons: PatronService,
        catalog: CatalogService,
        bus: InventoryChangeBus,
        queue: Optional[ReservationQueue] = None,
        config: Optional[LendingConfig] = None,
    ) -> None:
        self.state = state
        self.patrons = patrons
        self.catalog = catalog
        self.bus = bus
        self.queue = queue or ReservationQueue()
        self.config = config or LendingConfig()

    # ---- loans
    def checkout(
        self,
        patron_id: str,
        copy_id: str,
        due_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> LoanRecord:
        now = now or datetime.now()
        due_at = due_at or now + timedelta(days=self.config.default_loan_days)
        patron = self.patrons.get(patron_id)
        copy = self.catalog.get_copy(copy_id)

        with self.state.patron_locks.hold(patron_id), self.state.copy_locks.hold(copy_id):
            if not self.patrons.is_eligible_for_borrowing(patron_id):
                raise ValidationFailure("Patron is not eligible for borrowing")
            if not copy.is_available():
                raise BusinessRuleViolation(
                    f"Item {copy_id} is not available for checkout ({copy.status.name})"
                )

            loan = LoanRecord(
                loan_id=_new_id("loan"),
                copy_id=copy_id,
                patron_id=patron_id,
                checkout_at=now,
                due_at=due_at,
                fee_policy=policy_for_tier(patron.tier),
            )
            copy.status = CopyStatus.CHECKED_OUT
            patron.current_loans.add(loan.loan_id)
            self.state.loans.add(loan)

        logger.info(
            "checkout copy=%s patron=%s loan=%s due=%s",
            copy_id,
            patron_id,
            loan.loan_id,
            due_at.isoformat(),
        )
        return loan

    def return_item(self, loan_id: str, now: Optional[datetime] = None) -> LoanRecord:
        now = now or datetime.now()
        loan = self.get_loan(loan_id)
        copy = self.catalog.get_copy(loan.copy_id)

        with self.state.patron_locks.hold(loan.patron_id), self.state.copy_locks.hold(loan.copy_id):
            if loan.status != LoanStatus.ACTIVE:
                raise ValidationFailure(f"Loan {loan_id} is not active")

            loan.returned_at = now
            # priced while still ACTIVE so the return date counts
            loan.late_fee = calculate_fee(loan, now)
            loan.status = LoanStatus.RETURNED
            previous = copy.status
            copy.status = CopyStatus.AVAILABLE

            patron = self.state.patrons.get(loan.patron_id)
            if patron is not None:
                patron.current_loans.discard(loan_id)
                if loan_id not in patron.loan_history:
                    patron.loan_history.append(loan_id)

        logger.info("return loan=%s fee=%.2f", loan_id, loan.late_fee)
        self.bus.notify(copy, previous)
        return loan

    def set_copy_status(self, copy_id: str, status: CopyStatus) -> ItemCopy:
        """Move a copy between shelf states (maintenance, lost, removed...)."""
        copy = self.catalog.get_copy(copy_id)
        with self.state.copy_locks.hold(copy_id):
            if status == CopyStatus.CHECKED_OUT:
                raise BusinessRuleViolation("Copies are checked out through checkout()")
            if copy.status == CopyStatus.CHECKED_OUT:
                raise BusinessRuleViolation(f"Item {copy_id} is checked out")
            previous = copy.status
            if previous == status:
                return copy
            copy.status = status

        logger.info("copy=%s status=%s -> %s", copy_id, previous.name, status.name)
        self.bus.notify(copy, previous)
        return copy

    # ---- reservations
    def reserve(
        self, patron_id: str, work_id: str, now: Optional[datetime] = None
    ) -> Reservation:
        now = now or datetime.now()
        self.patrons.get(patron_id)
        self.catalog.get_work(work_id)

        with self.state.work_locks.hold(work_id):
            pending = self.state.reservations.list_pending_for_work(work_id)
            if any(r.patron_id == patron_id for r in pending):
                raise BusinessRuleViolation(
                    "Patron already has an active reservation for this item"
                )

            r = Reservation(
                reservation_id=_new_id("res"),
                work_id=work_id,
                patron_id=patron_id,
                reserved_at=now,
                expires_at=now + timedelta(days=self.config.reservation_expiry_days),
                queue_position=self.queue.next_position(pending),
                sequence=self.state.reservations.next_sequence(),
            )
            self.state.reservations.add(r)
            self._repack(work_id)

        logger.info(
            "reserve work=%s patron=%s position=%d", work_id, patron_id, r.queue_position
        )
        return r

    def cancel_reservation(self, reservation_id: str) -> Reservation:
        r = self.get_reservation(reservation_id)
        with self.state.work_locks.hold(r.work_id):
            if r.status != ReservationStatus.PENDING:
                raise ValidationFailure("Reservation is not in PENDING status")
            r.status = ReservationStatus.CANCELLED
            self._repack(r.work_id)

        logger.info("cancelled reservation=%s", reservation_id)
        return r

    def _repack(self, work_id: str) -> None:
        # caller holds the work lock
        pending = self.state.reservations.list_pending_for_work(work_id)
        for r, position in self.queue.repack(pending):
            r.queue_position = position

    # ---- sweeps
    def process_expired_reservations(
        self, now: Optional[datetime] = None
    ) -> List[Reservation]:
        now = now or datetime.now()
        expired: List[Reservation] = []
        for r in self.state.reservations.list_pending():
            try:
                with self.state.work_locks.hold(r.work_id):
                    if not r.is_expired(now):
                        continue
                    r.status = ReservationStatus.EXPIRED
                    self._repack(r.work_id)
            except Exception:
                logger.exception("expiry sweep skipped reservation=%s", r.reservation_id)
                continue
            expired.append(r)
            logger.info("reservation=%s expired", r.reservation_id)
        return expired

    def process_overdue_loans(self, now: Optional[datetime] = None) -> List[LoanRecord]:
        now = now or datetime.now()
        updated: List[LoanRecord] = []
        for loan in self.state.loans.list_active():
            try:
                with self.state.copy_locks.hold(loan.copy_id):
                    if not loan.is_overdue(now):
                        continue
                    loan.late_fee = calculate_fee(loan, now)
            except Exception:
                logger.exception("overdue sweep skipped loan=%s", loan.loan_id)
                continue
            updated.append(loan)
            logger.info("late fee loan=%s fee=%.2f", loan.loan_id, loan.late_fee)
        return updated

    # ---- queries
    def get_loan(self, loan_id: str) -> LoanRecord:
        loan = self.state.loans.get(loan_id)
        if loan is None:
            raise NotFound(f"Loan record {loan_id} not found")
        return loan

    def get_reservation(self, reservation_id: str) -> Reservation:
        r = self.state.reservations.get(reservation_id)
        if r is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return r

    def active_loans(self) -> List[LoanRecord]:
        return self.state.loans.list_active()

    def overdue_loans(self, now: Optional[datetime] = None) -> List[LoanRecord]:
        now = now or datetime.now()
        return [l for l in self.state.loans.list_active() if l.is_overdue(now)]

    def patron_active_loans(self, patron_id: str) -> List[LoanRecord]:
        return [
            l
            for l in self.state.loans.list_by_patron(patron_id)
            if l.status == LoanStatus.ACTIVE
        ]

    def patron_history(self, patron_id: str) -> List[LoanRecord]:
        return self.state.loans.list_by_patron(patron_id)

    def item_reservations(self, work_id: str) -> List[Reservation]:
        pending = self.state.reservations.list_pending_for_work(work_id)
        return sorted(pending, key=lambda r: r.queue_position)

    def patron_reservations(self, patron_id: str) -> List[Reservation]:
        return self.state.reservations.list_pending_by_patron(patron_id)

    def calculate_late_fees(self, loan_id: str, now: Optional[datetime] = None) -> float:
        return calculate_fee(self.get_loan(loan_id), now)

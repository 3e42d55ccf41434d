from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import List, Optional, Set


class PatronTier(Enum):
    STANDARD = 1
    STUDENT = 3
    FACULTY = 10
    SENIOR = 5

    @property
    def max_loans(self) -> int:
        return self.value


class FeePolicy(Enum):
    DAILY = auto()
    WEEKLY = auto()
    BIWEEKLY = auto()
    MONTHLY = auto()


@dataclass
class Patron:
    patron_id: str
    name: str
    email: str
    tier: PatronTier = PatronTier.STANDARD
    registered_at: datetime = field(default_factory=datetime.now)
    active: bool = True
    current_loans: Set[str] = field(default_factory=set)
    loan_history: List[str] = field(default_factory=list)


@dataclass
class Work:
    work_id: str
    title: str
    author: str
    isbn: str


class CopyStatus(Enum):
    AVAILABLE = auto()
    CHECKED_OUT = auto()
    RESERVED = auto()
    UNDER_MAINTENANCE = auto()
    LOST = auto()
    REMOVED = auto()


class Condition(Enum):
    NEW = auto()
    GOOD = auto()
    FAIR = auto()
    POOR = auto()
    DAMAGED = auto()


@dataclass
class ItemCopy:
    copy_id: str
    work_id: str
    barcode: str = ""
    status: CopyStatus = CopyStatus.AVAILABLE
    condition: Condition = Condition.GOOD

    def is_available(self) -> bool:
        return self.status == CopyStatus.AVAILABLE


class LoanStatus(Enum):
    ACTIVE = auto()
    RETURNED = auto()


@dataclass
class LoanRecord:
    loan_id: str
    copy_id: str
    patron_id: str
    checkout_at: datetime
    due_at: datetime
    fee_policy: FeePolicy
    returned_at: Optional[datetime] = None
    late_fee: float = 0.0
    status: LoanStatus = LoanStatus.ACTIVE

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self.status == LoanStatus.ACTIVE and now > self.due_at


class ReservationStatus(Enum):
    PENDING = auto()
    CANCELLED = auto()
    EXPIRED = auto()


@dataclass
class Reservation:
    reservation_id: str
    work_id: str
    patron_id: str
    reserved_at: datetime
    expires_at: datetime
    queue_position: int
    sequence: int = 0
    status: ReservationStatus = ReservationStatus.PENDING

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self.status == ReservationStatus.PENDING and now > self.expires_at

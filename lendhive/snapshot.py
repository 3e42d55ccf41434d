"""
Versioned snapshot of the whole lending state.

Each entity collection is listed explicitly. Enum values are stored by
name so the file stays readable and independent of enum ordering.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .domain import (
    Condition,
    CopyStatus,
    FeePolicy,
    ItemCopy,
    LoanRecord,
    LoanStatus,
    Patron,
    PatronTier,
    Reservation,
    ReservationStatus,
    Work,
)
from .errors import ValidationFailure
from .repositories import LibraryState

SNAPSHOT_VERSION = 1


class PatronEntry(BaseModel):
    patron_id: str
    name: str
    email: str
    tier: str
    registered_at: datetime
    active: bool = True
    current_loans: List[str] = Field(default_factory=list)
    loan_history: List[str] = Field(default_factory=list)


class WorkEntry(BaseModel):
    work_id: str
    title: str
    author: str
    isbn: str


class CopyEntry(BaseModel):
    copy_id: str
    work_id: str
    barcode: str = ""
    status: str
    condition: str = Condition.GOOD.name


class LoanEntry(BaseModel):
    loan_id: str
    copy_id: str
    patron_id: str
    checkout_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    late_fee: float = Field(0.0, ge=0.0)
    status: str
    fee_policy: str


class ReservationEntry(BaseModel):
    reservation_id: str
    work_id: str
    patron_id: str
    reserved_at: datetime
    expires_at: datetime
    queue_position: int = Field(..., ge=1)
    sequence: int = 0
    status: str


class LibrarySnapshot(BaseModel):
    """
    Whole-state dump.
    version: schema version, bumped on incompatible changes
    """

    version: Literal[1] = SNAPSHOT_VERSION
    taken_at: datetime = Field(default_factory=datetime.now)
    patrons: List[PatronEntry] = Field(default_factory=list)
    works: List[WorkEntry] = Field(default_factory=list)
    copies: List[CopyEntry] = Field(default_factory=list)
    loans: List[LoanEntry] = Field(default_factory=list)
    reservations: List[ReservationEntry] = Field(default_factory=list)


def take_snapshot(state: LibraryState) -> LibrarySnapshot:
    return LibrarySnapshot(
        patrons=[
            PatronEntry(
                patron_id=p.patron_id,
                name=p.name,
                email=p.email,
                tier=p.tier.name,
                registered_at=p.registered_at,
                active=p.active,
                current_loans=sorted(p.current_loans),
                loan_history=list(p.loan_history),
            )
            for p in state.patrons.list_all()
        ],
        works=[
            WorkEntry(work_id=w.work_id, title=w.title, author=w.author, isbn=w.isbn)
            for w in state.catalog.list_works()
        ],
        copies=[
            CopyEntry(
                copy_id=c.copy_id,
                work_id=c.work_id,
                barcode=c.barcode,
                status=c.status.name,
                condition=c.condition.name,
            )
            for c in state.catalog.list_copies()
        ],
        loans=[
            LoanEntry(
                loan_id=l.loan_id,
                copy_id=l.copy_id,
                patron_id=l.patron_id,
                checkout_at=l.checkout_at,
                due_at=l.due_at,
                returned_at=l.returned_at,
                late_fee=l.late_fee,
                status=l.status.name,
                fee_policy=l.fee_policy.name,
            )
            for l in state.loans.list_all()
        ],
        reservations=[
            ReservationEntry(
                reservation_id=r.reservation_id,
                work_id=r.work_id,
                patron_id=r.patron_id,
                reserved_at=r.reserved_at,
                expires_at=r.expires_at,
                queue_position=r.queue_position,
                sequence=r.sequence,
                status=r.status.name,
            )
            for r in state.reservations.list_all()
        ],
    )


def restore_state(snapshot: LibrarySnapshot) -> LibraryState:
    """Build a fresh LibraryState holding everything in `snapshot`."""
    state = LibraryState()
    try:
        for p in snapshot.patrons:
            state.patrons.add(
                Patron(
                    patron_id=p.patron_id,
                    name=p.name,
                    email=p.email,
                    tier=PatronTier[p.tier],
                    registered_at=p.registered_at,
                    active=p.active,
                    current_loans=set(p.current_loans),
                    loan_history=list(p.loan_history),
                )
            )
        for w in snapshot.works:
            state.catalog.add_work(
                Work(work_id=w.work_id, title=w.title, author=w.author, isbn=w.isbn)
            )
        for c in snapshot.copies:
            state.catalog.add_copy(
                ItemCopy(
                    copy_id=c.copy_id,
                    work_id=c.work_id,
                    barcode=c.barcode,
                    status=CopyStatus[c.status],
                    condition=Condition[c.condition],
                )
            )
        for l in snapshot.loans:
            state.loans.add(
                LoanRecord(
                    loan_id=l.loan_id,
                    copy_id=l.copy_id,
                    patron_id=l.patron_id,
                    checkout_at=l.checkout_at,
                    due_at=l.due_at,
                    returned_at=l.returned_at,
                    late_fee=l.late_fee,
                    status=LoanStatus[l.status],
                    fee_policy=FeePolicy[l.fee_policy],
                )
            )
        for r in snapshot.reservations:
            state.reservations.add(
                Reservation(
                    reservation_id=r.reservation_id,
                    work_id=r.work_id,
                    patron_id=r.patron_id,
                    reserved_at=r.reserved_at,
                    expires_at=r.expires_at,
                    queue_position=r.queue_position,
                    sequence=r.sequence,
                    status=ReservationStatus[r.status],
                )
            )
    except KeyError as e:
        raise ValidationFailure(f"Unknown enum value in snapshot: {e}") from e
    return state


def save_snapshot(state: LibraryState, path: Union[str, Path]) -> Path:
    """Write the snapshot as JSON, replacing `path` atomically."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(take_snapshot(state).model_dump_json(indent=2))
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return path


def load_snapshot(path: Union[str, Path]) -> LibraryState:
    raw = Path(path).read_text(encoding="utf-8")
    try:
        snapshot = LibrarySnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise ValidationFailure(f"Invalid snapshot {path}: {e}") from e
    return restore_state(snapshot)

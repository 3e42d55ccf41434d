"""
lendhive lending engine.

Exports key modules for convenient imports.
"""

from .domain import (
    PatronTier,
    FeePolicy,
    Patron,
    Work,
    Condition,
    CopyStatus,
    ItemCopy,
    LoanStatus,
    LoanRecord,
    ReservationStatus,
    Reservation,
)

from .errors import (
    LendingError,
    NotFound,
    ValidationFailure,
    BusinessRuleViolation,
)

from .fees import calculate_fee, policy_for_tier

from .repositories import (
    KeyedLocks,
    PatronRepo,
    CatalogRepo,
    LoanRepo,
    ReservationRepo,
    LibraryState,
)

from .waitlist import ReservationQueue

from .events import (
    InventoryChangeBus,
    AvailabilityCounter,
    AuditTrail,
    WaitingPatronNotifier,
    LogNotifier,
    OutboxNotifier,
)

from .services import (
    PatronService,
    CatalogService,
    LendingLedger,
)

from .snapshot import LibrarySnapshot, take_snapshot, restore_state, save_snapshot, load_snapshot
from .config import LendingConfig, configure_logging
from .api import LibrarySystem
from .seed import seed_demo_data

__all__ = [
    # domain
    "PatronTier",
    "FeePolicy",
    "Patron",
    "Work",
    "Condition",
    "CopyStatus",
    "ItemCopy",
    "LoanStatus",
    "LoanRecord",
    "ReservationStatus",
    "Reservation",
    # errors
    "LendingError",
    "NotFound",
    "ValidationFailure",
    "BusinessRuleViolation",
    # fees
    "calculate_fee",
    "policy_for_tier",
    # state
    "KeyedLocks",
    "PatronRepo",
    "CatalogRepo",
    "LoanRepo",
    "ReservationRepo",
    "LibraryState",
    # queue + events
    "ReservationQueue",
    "InventoryChangeBus",
    "AvailabilityCounter",
    "AuditTrail",
    "WaitingPatronNotifier",
    "LogNotifier",
    "OutboxNotifier",
    # services
    "PatronService",
    "CatalogService",
    "LendingLedger",
    # snapshot
    "LibrarySnapshot",
    "take_snapshot",
    "restore_state",
    "save_snapshot",
    "load_snapshot",
    # config
    "LendingConfig",
    "configure_logging",
    # api
    "LibrarySystem",
    # seed
    "seed_demo_data",
]

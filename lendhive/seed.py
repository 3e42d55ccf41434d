from __future__ import annotations
from datetime import datetime, timedelta
import logging

from .api import LibrarySystem
from .domain import PatronTier

logger = logging.getLogger(__name__)


def seed_demo_data(sys: LibrarySystem) -> None:
    # patrons
    alice = sys.register_patron("Alice Reader", "alice@example.com", PatronTier.STUDENT)
    bob = sys.register_patron("Bob Faculty", "bob@example.com", PatronTier.FACULTY)
    sys.register_patron("Sam Senior", "sam@example.com", PatronTier.SENIOR)
    sys.register_patron("Stan Dard", "stan@example.com")

    # works
    dune = sys.add_work("Dune", "Frank Herbert", "9780441172719", copies=2)
    hp1 = sys.add_work(
        "Harry Potter and the Sorcerer's Stone", "J.K. Rowling", "9780590353427", copies=1
    )
    sys.add_work("Clean Code", "Robert C. Martin", "9780132350884", copies=3)

    # checkouts; the Dune loan is already three days overdue
    now = datetime.now()
    dune_copy = sys.catalog.available_copies(dune.work_id)[0]
    hp1_copy = sys.catalog.available_copies(hp1.work_id)[0]
    sys.checkout(alice.patron_id, dune_copy, due_at=now - timedelta(days=3))
    sys.checkout(bob.patron_id, hp1_copy)

    # reservations
    sys.reserve(alice.patron_id, hp1.work_id)

    logger.info(
        "seeded patrons=%d works=%d",
        len(sys.state.patrons.list_all()),
        len(sys.state.catalog.list_works()),
    )

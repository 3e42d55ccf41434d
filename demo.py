from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from lendhive import LibrarySystem, OutboxNotifier, configure_logging, seed_demo_data
from lendhive.errors import LendingError

logger = logging.getLogger("lendhive.demo")


def demo_flow() -> None:
    configure_logging()
    outbox = OutboxNotifier()
    sys = LibrarySystem(notifier=outbox)
    seed_demo_data(sys)

    # Report inventory
    for work, total, available in sys.report_inventory():
        logger.info("inventory %s: total=%d available=%d", work.title, total, available)

    # Return the overdue loan (fee assessed under the student weekly policy)
    for loan in sys.report_overdue():
        returned = sys.return_item(loan.loan_id)
        logger.info("returned overdue loan %s fee=%.2f", returned.loan_id, returned.late_fee)

    # Return Bob's loan; Alice is waiting on that work and gets notified
    for loan in sys.ledger.active_loans():
        sys.return_item(loan.loan_id)
    for address, subject, _ in outbox.sent:
        logger.info("outbound to=%s subject=%s", address, subject)

    # A second reservation by the same patron is refused
    alice = next(p for p in sys.state.patrons.list_all() if p.name == "Alice Reader")
    pending = sys.ledger.patron_reservations(alice.patron_id)
    if pending:
        try:
            sys.reserve(alice.patron_id, pending[0].work_id)
        except LendingError as e:
            logger.info("second reservation denied: %s", e)

    # Snapshot round trip
    with tempfile.TemporaryDirectory() as tmp:
        path = sys.save(Path(tmp) / "library.json")
        restored = LibrarySystem.load(path)
        logger.info(
            "restored loans=%d reservations=%d",
            len(restored.state.loans.list_all()),
            len(restored.state.reservations.list_all()),
        )


if __name__ == "__main__":
    demo_flow()

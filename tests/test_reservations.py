import random
from datetime import timedelta

import pytest

from lendhive import (
    BusinessRuleViolation,
    NotFound,
    ReservationQueue,
    ReservationStatus,
    ValidationFailure,
)


def positions(ledger, work_id):
    return [(r.patron_id, r.queue_position) for r in ledger.item_reservations(work_id)]


def assert_contiguous(ledger, work_id):
    pending = ledger.state.reservations.list_pending_for_work(work_id)
    assert [r.queue_position for r in pending] == list(range(1, len(pending) + 1))


def test_reservation_defaults(ledger, patron, work, now):
    r = ledger.reserve(patron.patron_id, work.work_id, now=now)

    assert r.status == ReservationStatus.PENDING
    assert r.queue_position == 1
    assert r.reserved_at == now
    assert r.expires_at == now + timedelta(days=30)


def test_positions_follow_reservation_order(ledger, make_patron, work, now):
    a, b, c = make_patron(), make_patron(), make_patron()
    ra = ledger.reserve(a.patron_id, work.work_id, now=now)
    rb = ledger.reserve(b.patron_id, work.work_id, now=now + timedelta(minutes=1))
    rc = ledger.reserve(c.patron_id, work.work_id, now=now + timedelta(minutes=2))

    assert [ra.queue_position, rb.queue_position, rc.queue_position] == [1, 2, 3]


def test_cancel_repacks_queue(ledger, make_patron, work, now):
    a, b, c = make_patron(), make_patron(), make_patron()
    ledger.reserve(a.patron_id, work.work_id, now=now)
    rb = ledger.reserve(b.patron_id, work.work_id, now=now + timedelta(minutes=1))
    ledger.reserve(c.patron_id, work.work_id, now=now + timedelta(minutes=2))

    ledger.cancel_reservation(rb.reservation_id)

    assert rb.status == ReservationStatus.CANCELLED
    assert positions(ledger, work.work_id) == [(a.patron_id, 1), (c.patron_id, 2)]


def test_same_timestamp_keeps_arrival_order(ledger, make_patron, work, now):
    a, b = make_patron(), make_patron()
    ledger.reserve(a.patron_id, work.work_id, now=now)
    ledger.reserve(b.patron_id, work.work_id, now=now)
    assert positions(ledger, work.work_id) == [(a.patron_id, 1), (b.patron_id, 2)]


def test_duplicate_pending_reservation(ledger, patron, work):
    ledger.reserve(patron.patron_id, work.work_id)
    with pytest.raises(BusinessRuleViolation):
        ledger.reserve(patron.patron_id, work.work_id)
    assert len(ledger.patron_reservations(patron.patron_id)) == 1


def test_reserve_again_after_cancel(ledger, patron, work):
    r = ledger.reserve(patron.patron_id, work.work_id)
    ledger.cancel_reservation(r.reservation_id)
    again = ledger.reserve(patron.patron_id, work.work_id)
    assert again.queue_position == 1


def test_reserve_unknown_work_or_patron(ledger, patron, work):
    with pytest.raises(NotFound):
        ledger.reserve(patron.patron_id, "wrk_missing")
    with pytest.raises(NotFound):
        ledger.reserve("pat_missing", work.work_id)


def test_cancel_unknown_reservation(ledger):
    with pytest.raises(NotFound):
        ledger.cancel_reservation("res_missing")


def test_cancel_twice(ledger, patron, work):
    r = ledger.reserve(patron.patron_id, work.work_id)
    ledger.cancel_reservation(r.reservation_id)
    with pytest.raises(ValidationFailure):
        ledger.cancel_reservation(r.reservation_id)


def test_expiry_sweep(ledger, make_patron, work, now):
    a, b, c = make_patron(), make_patron(), make_patron()
    ra = ledger.reserve(a.patron_id, work.work_id, now=now - timedelta(days=31))
    ledger.reserve(b.patron_id, work.work_id, now=now - timedelta(days=10))
    ledger.reserve(c.patron_id, work.work_id, now=now)

    expired = ledger.process_expired_reservations(now=now)

    assert expired == [ra]
    assert ra.status == ReservationStatus.EXPIRED
    assert positions(ledger, work.work_id) == [(b.patron_id, 1), (c.patron_id, 2)]


def test_expiry_sweep_isolates_failures(ledger, make_patron, work, now):
    bad = ledger.reserve(make_patron().patron_id, work.work_id, now=now - timedelta(days=40))
    good = ledger.reserve(make_patron().patron_id, work.work_id, now=now - timedelta(days=31))
    bad.expires_at = None

    expired = ledger.process_expired_reservations(now=now)

    assert expired == [good]
    assert good.status == ReservationStatus.EXPIRED
    assert bad.status == ReservationStatus.PENDING


def test_expiry_is_strictly_after_deadline(ledger, patron, work, now):
    r = ledger.reserve(patron.patron_id, work.work_id, now=now - timedelta(days=30))
    assert ledger.process_expired_reservations(now=now) == []
    assert r.status == ReservationStatus.PENDING


def test_queries(ledger, make_patron, library, now):
    other = library.add_work("Clean Code", "Robert C. Martin", "9780132350884")
    first = library.add_work("Dune", "Frank Herbert", "9780441172719")
    a, b = make_patron(), make_patron()
    ledger.reserve(a.patron_id, first.work_id, now=now)
    ledger.reserve(b.patron_id, first.work_id, now=now + timedelta(seconds=1))
    ledger.reserve(a.patron_id, other.work_id, now=now)

    assert [r.patron_id for r in ledger.item_reservations(first.work_id)] == [
        a.patron_id,
        b.patron_id,
    ]
    assert {r.work_id for r in ledger.patron_reservations(a.patron_id)} == {
        first.work_id,
        other.work_id,
    }


def test_random_reserve_cancel_expire_stays_contiguous(ledger, make_patron, work, now):
    rng = random.Random(1234)
    patrons = [make_patron() for _ in range(12)]
    clock = now
    for _ in range(80):
        clock += timedelta(hours=rng.randint(1, 96))
        action = rng.random()
        pending = ledger.state.reservations.list_pending_for_work(work.work_id)
        if action < 0.5:
            waiting = {r.patron_id for r in pending}
            free = [p for p in patrons if p.patron_id not in waiting]
            if free:
                ledger.reserve(rng.choice(free).patron_id, work.work_id, now=clock)
        elif action < 0.8 and pending:
            ledger.cancel_reservation(rng.choice(pending).reservation_id)
        else:
            ledger.process_expired_reservations(now=clock)
        assert_contiguous(ledger, work.work_id)


class TestReservationQueue:
    def test_repack_orders_by_time(self, ledger, make_patron, work, now):
        a, b = make_patron(), make_patron()
        late = ledger.reserve(a.patron_id, work.work_id, now=now + timedelta(hours=1))
        early = ledger.reserve(b.patron_id, work.work_id, now=now)

        queue = ReservationQueue()
        assert queue.repack([late, early]) == [(early, 1), (late, 2)]
        assert queue.is_contiguous([late, early])

    def test_next_position_counts_pending_only(self, ledger, make_patron, work):
        a, b = make_patron(), make_patron()
        ra = ledger.reserve(a.patron_id, work.work_id)
        rb = ledger.reserve(b.patron_id, work.work_id)
        ledger.cancel_reservation(ra.reservation_id)

        assert ReservationQueue().next_position([ra, rb]) == 2

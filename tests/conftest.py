from datetime import datetime

import pytest

from lendhive import LibrarySystem, OutboxNotifier, PatronTier


@pytest.fixture
def now():
    return datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def library(outbox):
    return LibrarySystem(notifier=outbox)


@pytest.fixture
def ledger(library):
    return library.ledger


@pytest.fixture
def work(library):
    return library.add_work("Dune", "Frank Herbert", "9780441172719", copies=2)


@pytest.fixture
def copy_id(library, work):
    return library.catalog.available_copies(work.work_id)[0]


@pytest.fixture
def patron(library):
    return library.register_patron("Stan Dard", "stan@example.com", PatronTier.STANDARD)


@pytest.fixture
def make_patron(library):
    counter = {"n": 0}

    def _make(tier=PatronTier.STANDARD, name=None):
        counter["n"] += 1
        n = counter["n"]
        return library.register_patron(name or f"Patron {n}", f"patron{n}@example.com", tier)

    return _make

import logging

from lendhive import (
    LendingConfig,
    LibrarySystem,
    OutboxNotifier,
    configure_logging,
    seed_demo_data,
)


def test_seed_demo_data():
    sys = LibrarySystem(notifier=OutboxNotifier())
    seed_demo_data(sys)

    assert len(sys.state.patrons.list_all()) == 4
    assert len(sys.report_overdue()) == 1
    assert len(sys.ledger.active_loans()) == 2
    inventory = {w.title: (total, available) for w, total, available in sys.report_inventory()}
    assert inventory["Dune"] == (2, 1)


def test_run_sweeps_counts():
    sys = LibrarySystem(notifier=OutboxNotifier())
    seed_demo_data(sys)
    assert sys.run_sweeps() == (0, 1)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("LENDHIVE_RESERVATION_EXPIRY_DAYS", "7")
    monkeypatch.setenv("LENDHIVE_DEFAULT_LOAN_DAYS", "21")
    monkeypatch.setenv("LENDHIVE_LOG_LEVEL", "debug")

    config = LendingConfig.from_env()
    assert config == LendingConfig(
        reservation_expiry_days=7, default_loan_days=21, log_level="DEBUG"
    )


def test_config_drives_reservation_expiry(now):
    sys = LibrarySystem(config=LendingConfig(reservation_expiry_days=3))
    work = sys.add_work("Dune", "Frank Herbert", "9780441172719")
    p = sys.register_patron("Ann", "ann@example.com")
    r = sys.ledger.reserve(p.patron_id, work.work_id, now=now)
    assert (r.expires_at - now).days == 3


def test_configure_logging_installs_one_handler():
    logger = configure_logging("WARNING")
    configure_logging("WARNING")
    assert logger.name == "lendhive"
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1

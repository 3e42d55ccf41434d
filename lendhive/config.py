from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass
class LendingConfig:
    reservation_expiry_days: int = 30
    default_loan_days: int = 14
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LendingConfig":
        return cls(
            reservation_expiry_days=int(
                os.getenv("LENDHIVE_RESERVATION_EXPIRY_DAYS", "30")
            ),
            default_loan_days=int(os.getenv("LENDHIVE_DEFAULT_LOAN_DAYS", "14")),
            log_level=os.getenv("LENDHIVE_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger("lendhive")
    logger.setLevel(level or LendingConfig.from_env().log_level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger

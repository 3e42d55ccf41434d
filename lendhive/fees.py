"""
Late-fee policies.

A loan carries a FeePolicy tag picked from the patron tier at checkout.
Each tag maps to a pure function of (loan, effective date); nothing here
mutates the loan.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import math

from .domain import FeePolicy, LoanRecord, LoanStatus, PatronTier

DAILY_PENALTY = 1.5
WEEKLY_PENALTY = 2.5
BIWEEKLY_PENALTY = 5.0
MONTHLY_PENALTY = 8.0

_ONE_DAY = timedelta(days=1)
_ONE_WEEK = timedelta(weeks=1)

TIER_POLICIES: Dict[PatronTier, FeePolicy] = {
    PatronTier.STANDARD: FeePolicy.DAILY,
    PatronTier.STUDENT: FeePolicy.WEEKLY,
    PatronTier.FACULTY: FeePolicy.BIWEEKLY,
    PatronTier.SENIOR: FeePolicy.MONTHLY,
}


def policy_for_tier(tier: PatronTier) -> FeePolicy:
    return TIER_POLICIES.get(tier, FeePolicy.DAILY)


def _effective_date(loan: LoanRecord, now: Optional[datetime]) -> datetime:
    if loan.returned_at is not None:
        return loan.returned_at
    return now or datetime.now()


def whole_months_between(start: datetime, end: datetime) -> int:
    """Complete calendar months from start to end, truncated toward zero."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    # a month only counts once the day-of-month and time have caught up
    end_rest = (end.day, end.time())
    start_rest = (start.day, start.time())
    if months > 0 and end_rest < start_rest:
        months -= 1
    elif months < 0 and end_rest > start_rest:
        months += 1
    return months


def daily_fee(loan: LoanRecord, now: Optional[datetime] = None) -> float:
    if loan.status == LoanStatus.RETURNED:
        return 0.0
    elapsed = _effective_date(loan, now) - loan.due_at
    days_late = elapsed // _ONE_DAY
    return max(0.0, days_late * DAILY_PENALTY)


def weekly_fee(loan: LoanRecord, now: Optional[datetime] = None) -> float:
    # only an early return is free here, unlike the other policies
    if (
        loan.status == LoanStatus.RETURNED
        and loan.returned_at is not None
        and loan.returned_at < loan.due_at
    ):
        return 0.0
    elapsed = _effective_date(loan, now) - loan.due_at
    weeks_late = math.ceil(elapsed / _ONE_WEEK)
    return max(0.0, weeks_late * WEEKLY_PENALTY)


def biweekly_fee(loan: LoanRecord, now: Optional[datetime] = None) -> float:
    if loan.status == LoanStatus.RETURNED:
        return 0.0
    elapsed = _effective_date(loan, now) - loan.due_at
    whole_weeks = int(elapsed / _ONE_WEEK)
    periods_late = math.ceil(whole_weeks / 2)
    return max(0.0, periods_late * BIWEEKLY_PENALTY)


def monthly_fee(loan: LoanRecord, now: Optional[datetime] = None) -> float:
    if loan.status == LoanStatus.RETURNED:
        return 0.0
    months_late = whole_months_between(loan.due_at, _effective_date(loan, now))
    return max(0.0, months_late * MONTHLY_PENALTY)


FEE_FUNCTIONS: Dict[FeePolicy, Callable[[LoanRecord, Optional[datetime]], float]] = {
    FeePolicy.DAILY: daily_fee,
    FeePolicy.WEEKLY: weekly_fee,
    FeePolicy.BIWEEKLY: biweekly_fee,
    FeePolicy.MONTHLY: monthly_fee,
}


def calculate_fee(loan: LoanRecord, now: Optional[datetime] = None) -> float:
    """Fee owed on `loan` under the policy bound to it at checkout."""
    return FEE_FUNCTIONS[loan.fee_policy](loan, now)

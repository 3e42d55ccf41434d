from __future__ import annotations


class LendingError(Exception):
    """Base class for every error the lending engine raises to its caller."""


class NotFound(LendingError):
    """Unknown patron, work, copy, loan or reservation id."""


class ValidationFailure(LendingError):
    """Input or state that makes the request invalid (ineligible patron, wrong status)."""


class BusinessRuleViolation(LendingError):
    """A well-formed request that library rules forbid."""

"""
Unit tests for lending.services.renewal – the renewal cap and new due date.
"""
from datetime import date, timedelta

import pytest

from lending.core.errors import ConflictError, ConflictReason, InvalidArgumentError
from lending.services.renewal import renew, renewals_left

TODAY = date(2025, 3, 16)


class TestRenew:
    def test_none_rejected(self):
        with pytest.raises(InvalidArgumentError):
            renew(None, TODAY)

    def test_first_renewal(self, make_loan):
        loan = make_loan(start_date=date(2025, 3, 1), due_date=TODAY)
        renew(loan, TODAY)
        assert loan.renewal_count == 1
        assert loan.due_date == TODAY + timedelta(days=15)

    def test_start_date_unchanged(self, make_loan):
        loan = make_loan(start_date=date(2025, 3, 1), due_date=TODAY)
        renew(loan, TODAY)
        assert loan.start_date == date(2025, 3, 1)

    def test_third_renewal_allowed(self, make_loan):
        loan = make_loan(due_date=TODAY, renewal_count=2)
        renew(loan, TODAY)
        assert loan.renewal_count == 3
        assert renewals_left(loan) == 0

    def test_fourth_renewal_rejected_without_change(self, make_loan):
        loan = make_loan(due_date=TODAY, renewal_count=3)
        with pytest.raises(ConflictError) as exc_info:
            renew(loan, TODAY)
        assert exc_info.value.reason == ConflictReason.RENEWAL_LIMIT_EXCEEDED
        assert loan.renewal_count == 3
        assert loan.due_date == TODAY


class TestRenewalsLeft:
    def test_fresh_loan(self, make_loan):
        assert renewals_left(make_loan()) == 3

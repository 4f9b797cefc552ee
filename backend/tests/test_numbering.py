"""
Transaction numbering tests.

Verifies:
- PREFIX-YYYYMMDD-NNNN formatting per transaction type
- Consecutive numbers per (type, day) are gap-free
- Counters are independent per type and per day
- A rolled-back allocation gives its number back
"""

from datetime import date

import pytest

from posledger.errors import InvalidArgument
from posledger.extensions import db
from posledger.models import TransactionSequence
from posledger.services.numbering_service import format_transaction_number, next_transaction_number


DAY = date(2026, 1, 19)


class TestFormat:
    @pytest.mark.parametrize(
        "transaction_type,expected",
        [
            ("sale", "SAL-20260119-0007"),
            ("purchase", "PUR-20260119-0007"),
            ("adjustment", "ADJ-20260119-0007"),
        ],
    )
    def test_prefix_per_type(self, transaction_type, expected):
        assert format_transaction_number(transaction_type, DAY, 7) == expected

    def test_large_sequence_keeps_all_digits(self):
        assert format_transaction_number("sale", DAY, 12345) == "SAL-20260119-12345"

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidArgument):
            format_transaction_number("refund", DAY, 1)


class TestAllocation:
    def test_consecutive_numbers_are_gap_free(self, db_session):
        numbers = [next_transaction_number("sale", DAY) for _ in range(3)]
        db_session.commit()
        assert numbers == ["SAL-20260119-0001", "SAL-20260119-0002", "SAL-20260119-0003"]

    def test_counters_are_per_type_and_day(self, db_session):
        assert next_transaction_number("sale", DAY) == "SAL-20260119-0001"
        assert next_transaction_number("purchase", DAY) == "PUR-20260119-0001"
        assert next_transaction_number("sale", date(2026, 1, 20)) == "SAL-20260120-0001"
        assert next_transaction_number("sale", DAY) == "SAL-20260119-0002"
        db_session.commit()

        rows = db_session.query(TransactionSequence).count()
        assert rows == 3

    def test_rollback_returns_number(self, db_session):
        assert next_transaction_number("adjustment", DAY) == "ADJ-20260119-0001"
        db_session.commit()

        assert next_transaction_number("adjustment", DAY) == "ADJ-20260119-0002"
        db.session.rollback()

        assert next_transaction_number("adjustment", DAY) == "ADJ-20260119-0002"
        db_session.commit()

    def test_unknown_type_does_not_touch_counters(self, db_session):
        with pytest.raises(InvalidArgument):
            next_transaction_number("refund", DAY)
        assert db_session.query(TransactionSequence).count() == 0

# Overview: Transaction number allocation (PREFIX-YYYYMMDD-NNNN) from per-day counters.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidArgument
from ..extensions import db
from ..models import TransactionSequence, TRANSACTION_TYPES
from ..time_utils import utctoday
from .concurrency import begin_write

SEQUENCE_PAD = 4


def format_transaction_number(transaction_type: str, on_date: date, sequence: int) -> str:
    """
    Pure formatter: ("sale", 2026-01-19, 7) -> "SAL-20260119-0007".

    Sequences past 9999 keep all their digits rather than wrapping.
    """
    prefix = TRANSACTION_TYPES.get(transaction_type)
    if prefix is None:
        raise InvalidArgument(
            f"Unknown transaction type: {transaction_type}",
            {"allowed": sorted(TRANSACTION_TYPES)},
        )
    return f"{prefix}-{on_date.strftime('%Y%m%d')}-{sequence:0{SEQUENCE_PAD}d}"


def _bump(transaction_type: str, on_date: date) -> int | None:
    stmt = (
        update(TransactionSequence)
        .where(
            TransactionSequence.type == transaction_type,
            TransactionSequence.seq_date == on_date,
        )
        .values(last_value=TransactionSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    return (
        db.session.query(TransactionSequence.last_value)
        .filter_by(type=transaction_type, seq_date=on_date)
        .scalar()
    )


def next_transaction_number(transaction_type: str, on_date: date | None = None) -> str:
    """
    Allocate the next number for (type, date) inside the caller's transaction.

    The counter row is incremented with a single UPDATE, which takes the row
    lock until the caller commits or rolls back. The first number of a day
    inserts the row inside a SAVEPOINT; losing that insert race to another
    writer falls back to the UPDATE. Nothing here commits, so a rolled-back
    caller gives its number back and committed numbers stay gap-free.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise InvalidArgument(
            f"Unknown transaction type: {transaction_type}",
            {"allowed": sorted(TRANSACTION_TYPES)},
        )
    on_date = on_date or utctoday()

    # SAVEPOINT on pysqlite only nests correctly inside an explicit BEGIN
    begin_write()

    value = _bump(transaction_type, on_date)
    if value is None:
        try:
            with db.session.begin_nested():
                db.session.add(TransactionSequence(type=transaction_type, seq_date=on_date, last_value=1))
            value = 1
        except IntegrityError:
            value = _bump(transaction_type, on_date)
            if value is None:
                raise

    return format_transaction_number(transaction_type, on_date, value)

# Overview: Service-layer operations for daily reference sequences (receipts, stock-ins).

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite

from ..extensions import db
from ..errors import ConcurrencyConflictError, SequenceIntegrityError
from ..models import DailySequence
from rxpos.time_utils import build_date_key


SEQ_RECEIPT = "RCPT"
SEQ_STOCK_IN = "STK"
REFERENCE_PREFIXES = {SEQ_RECEIPT, SEQ_STOCK_IN}


def build_reference_number(prefix: str, date_key: str, seq: int) -> str:
    """Format e.g. RCPT-20260129-0001. Sequences past 9999 simply widen."""
    if prefix not in REFERENCE_PREFIXES:
        raise ValueError(f"unknown reference prefix: {prefix!r}")
    if seq < 1:
        raise ValueError("seq must be positive")
    return f"{prefix}-{date_key}-{seq:04d}"


def _insert_if_absent(date_key: str, seq_type: str) -> None:
    dialect = db.engine.dialect.name
    values = {"date_key": date_key, "seq_type": seq_type, "last_seq": 0}
    if dialect == "sqlite":
        stmt = sqlite.insert(DailySequence.__table__).values(**values).on_conflict_do_nothing(
            index_elements=["date_key", "seq_type"]
        )
    elif dialect == "postgresql":
        stmt = postgresql.insert(DailySequence.__table__).values(**values).on_conflict_do_nothing(
            index_elements=["date_key", "seq_type"]
        )
    else:
        exists = db.session.execute(
            select(DailySequence.id).where(
                DailySequence.date_key == date_key,
                DailySequence.seq_type == seq_type,
            )
        ).first()
        if exists:
            return
        stmt = DailySequence.__table__.insert().values(**values)
    db.session.execute(stmt)


def next_daily_sequence(seq_type: str, moment: datetime | date | None = None) -> tuple[int, str]:
    """
    Allocate the next per-day number for seq_type inside the caller's transaction.

    Returns (seq, date_key). Never commits: if the caller rolls back, the
    increment rolls back with it and the number is reused.

    Raises:
        SequenceIntegrityError: counter row missing right after insert-if-absent
        ConcurrencyConflictError: the guarded increment lost a race
    """
    if seq_type not in REFERENCE_PREFIXES:
        raise ValueError(f"unknown sequence type: {seq_type!r}")

    date_key = build_date_key(moment, current_app.config.get("BUSINESS_TIMEZONE"))

    _insert_if_absent(date_key, seq_type)

    row = db.session.execute(
        select(DailySequence.id, DailySequence.last_seq).where(
            DailySequence.date_key == date_key,
            DailySequence.seq_type == seq_type,
        )
    ).first()
    if row is None:
        current_app.logger.error(
            "Daily sequence row missing after initialization (date_key=%s, type=%s)",
            date_key,
            seq_type,
        )
        raise SequenceIntegrityError(f"sequence-not-initialized:{seq_type}:{date_key}")

    next_seq = row.last_seq + 1
    result = db.session.execute(
        update(DailySequence)
        .where(DailySequence.id == row.id, DailySequence.last_seq == row.last_seq)
        .values(last_seq=next_seq)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError(
            "concurrency-conflict",
            details={"resource": "daily_sequence", "seq_type": seq_type, "date_key": date_key},
        )

    return next_seq, date_key


def next_reference_number(seq_type: str, moment: datetime | date | None = None) -> str:
    seq, date_key = next_daily_sequence(seq_type, moment)
    return build_reference_number(seq_type, date_key, seq)

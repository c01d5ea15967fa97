from datetime import date, datetime

import pytest

from rxpos.errors import SequenceIntegrityError
from rxpos.extensions import db
from rxpos.models import DailySequence
from rxpos.services import sequence_service
from rxpos.services.sequence_service import (
    build_reference_number,
    next_daily_sequence,
    next_reference_number,
)
from rxpos.time_utils import build_date_key


def test_reference_number_format():
    assert build_reference_number("RCPT", "20260129", 1) == "RCPT-20260129-0001"
    assert build_reference_number("STK", "20260129", 42) == "STK-20260129-0042"
    assert build_reference_number("RCPT", "20260129", 12345) == "RCPT-20260129-12345"


@pytest.mark.parametrize("prefix,seq", [("SALE", 1), ("RCPT", 0), ("STK", -3)])
def test_reference_number_rejects_bad_input(prefix, seq):
    with pytest.raises(ValueError):
        build_reference_number(prefix, "20260129", seq)


def test_date_key_uses_calendar_day():
    assert build_date_key(date(2026, 1, 29)) == "20260129"
    assert build_date_key(datetime(2026, 12, 31, 23, 59)) == "20261231"


def test_first_call_initializes_counter_then_increments(db_session):
    moment = datetime(2026, 1, 29, 9, 0)

    assert next_daily_sequence("RCPT", moment) == (1, "20260129")
    assert next_daily_sequence("RCPT", moment) == (2, "20260129")
    assert next_daily_sequence("RCPT", moment) == (3, "20260129")
    db_session.commit()

    row = db_session.query(DailySequence).filter_by(date_key="20260129", seq_type="RCPT").one()
    assert row.last_seq == 3


def test_counters_are_partitioned_by_day_and_type(db_session):
    day1 = datetime(2026, 1, 29, 9, 0)
    day2 = datetime(2026, 1, 30, 9, 0)

    assert next_reference_number("RCPT", day1) == "RCPT-20260129-0001"
    assert next_reference_number("STK", day1) == "STK-20260129-0001"
    assert next_reference_number("RCPT", day1) == "RCPT-20260129-0002"
    assert next_reference_number("RCPT", day2) == "RCPT-20260130-0001"
    db_session.commit()

    assert db_session.query(DailySequence).count() == 3


def test_rolled_back_increment_is_reused(db_session):
    moment = datetime(2026, 1, 29, 9, 0)
    assert next_daily_sequence("RCPT", moment)[0] == 1
    db_session.commit()

    assert next_daily_sequence("RCPT", moment)[0] == 2
    db_session.rollback()

    assert next_daily_sequence("RCPT", moment)[0] == 2


def test_missing_row_after_insert_is_an_integrity_error(db_session, monkeypatch):
    monkeypatch.setattr(sequence_service, "_insert_if_absent", lambda date_key, seq_type: None)

    with pytest.raises(SequenceIntegrityError):
        next_daily_sequence("RCPT", datetime(2026, 1, 29, 9, 0))
    db.session.rollback()


def test_unknown_sequence_type_rejected(db_session):
    with pytest.raises(ValueError):
        next_daily_sequence("INVOICE")

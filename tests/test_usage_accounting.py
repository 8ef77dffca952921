from datetime import datetime

from sqlalchemy.orm import Session

from app.models import UsageLimit
from app.services.limit_policy import LimitType

OCTOBER = datetime(2026, 10, 19, 12, 0)
NOVEMBER = datetime(2026, 11, 2, 9, 0)


def test_first_access_creates_zeroed_record(accounting, user_id):
    record = accounting.get_current_record(user_id, OCTOBER)
    assert record.period_start == datetime(2026, 10, 1)
    assert record.period_end == datetime(2026, 10, 31, 23, 59, 59)
    assert record.transactions_count == 0
    assert record.voice_inputs_count == 0
    assert record.active_debts_count == 0


def test_same_period_returns_same_record(accounting, user_id, db_session: Session):
    first = accounting.get_current_record(user_id, OCTOBER)
    second = accounting.get_current_record(user_id, datetime(2026, 10, 30))
    assert first.id == second.id
    assert db_session.query(UsageLimit).filter(UsageLimit.user_id == user_id).count() == 1


def test_increment_and_decrement(accounting, user_id):
    accounting.increment_usage(user_id, LimitType.TRANSACTIONS, OCTOBER)
    accounting.increment_usage(user_id, LimitType.TRANSACTIONS, OCTOBER)
    record = accounting.increment_usage(user_id, LimitType.VOICE_INPUTS, OCTOBER)
    assert record.transactions_count == 2
    assert record.voice_inputs_count == 1

    record = accounting.decrement_usage(user_id, LimitType.TRANSACTIONS, OCTOBER)
    assert record.transactions_count == 1


def test_decrement_floors_at_zero(accounting, user_id):
    record = accounting.decrement_usage(user_id, LimitType.VOICE_INPUTS, OCTOBER)
    assert record.voice_inputs_count == 0


def test_new_month_starts_new_record(accounting, user_id, db_session: Session):
    accounting.increment_usage(user_id, LimitType.TRANSACTIONS, OCTOBER)
    accounting.set_active_debts_count(user_id, 3, OCTOBER)

    november = accounting.get_current_record(user_id, NOVEMBER)
    assert november.period_start == datetime(2026, 11, 1)
    assert november.transactions_count == 0
    assert november.active_debts_count == 0

    # The previous period is kept as history
    october = accounting.get_current_record(user_id, OCTOBER)
    assert october.transactions_count == 1
    assert october.active_debts_count == 3
    assert db_session.query(UsageLimit).filter(UsageLimit.user_id == user_id).count() == 2


def test_set_active_debts_count_is_absolute(accounting, user_id):
    accounting.set_active_debts_count(user_id, 4, OCTOBER)
    record = accounting.set_active_debts_count(user_id, 2, OCTOBER)
    assert record.active_debts_count == 2


def test_check_limit_for_free_user(accounting, user_id):
    for _ in range(10):
        accounting.increment_usage(user_id, LimitType.VOICE_INPUTS, OCTOBER)

    result = accounting.check_limit(user_id, LimitType.VOICE_INPUTS, OCTOBER)
    assert result.allowed is False
    assert result.current_usage == 10
    assert result.limit == 10


def test_check_limit_for_premium_user(accounting, subscriptions, user_id):
    subscriptions.grant_premium(user_id, granted_by="admin", is_lifetime=True)
    accounting.set_active_debts_count(user_id, 50)

    result = accounting.check_limit(user_id, LimitType.DEBTS)
    assert result.allowed is True
    assert result.limit is None

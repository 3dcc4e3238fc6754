"""
Tests for the reminder scheduler: date derivation, calendar registration and reminder state.
"""

from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from app.db.models import ReminderRecord, SystemEvent
from app.services.errors import InvalidTransition, ReminderNotFound
from app.services.ledger import LeadAction
from app.services.metrics import get_metrics
from app.services.reminders import (
    compute_reminder_date,
    create_travel_reminder,
    list_reminders,
    mark_reminder_triggered,
    register_with_calendar,
    reminder_instant,
)
from app.services.state_machine import apply_action
from tests.helpers.fake_calendar import FakeCalendar


@pytest.mark.parametrize(
    "travel_date,expected",
    [
        (date(2026, 6, 15), date(2026, 6, 8)),
        (date(2026, 1, 3), date(2025, 12, 27)),
        (date(2026, 3, 5), date(2026, 2, 26)),
        (date(2028, 3, 6), date(2028, 2, 28)),
    ],
)
def test_reminder_date_is_seven_calendar_days_before(travel_date, expected):
    assert compute_reminder_date(travel_date) == expected
    assert (travel_date - compute_reminder_date(travel_date)) == timedelta(days=7)


def test_reminder_instant_defaults_to_nine_local():
    instant = reminder_instant(date(2026, 6, 8))
    assert (instant.hour, instant.minute) == (9, 0)
    assert instant.utcoffset() == timedelta(hours=5, minutes=30)


def test_reminder_instant_with_chosen_time():
    instant = reminder_instant(date(2026, 6, 8), time(20, 15), tz="UTC")
    assert instant.isoformat() == "2026-06-08T20:15:00+00:00"


def confirm(db, lead, actor, calendar):
    return apply_action(
        db,
        lead.id,
        LeadAction(
            action_type="confirmed_advance_paid",
            itinerary_id="IT-5",
            total_amount=Decimal("5000"),
            advance_amount=Decimal("1000"),
            transaction_id="TXN-5",
            travel_date=date(2026, 1, 3),
        ),
        actor,
        calendar=calendar,
    )


def test_calendar_failure_keeps_reminder(db, make_lead, sales):
    lead = make_lead()
    calendar = FakeCalendar(fail_create=True)

    updated = confirm(db, lead, sales, calendar)

    assert updated.status == "confirmed"
    reminder = db.query(ReminderRecord).filter_by(lead_id=lead.id).one()
    assert reminder.reminder_date == date(2025, 12, 27)
    assert reminder.calendar_event_id is None
    assert reminder.status == "pending"
    event = db.query(SystemEvent).filter_by(event_type="calendar.registration_failed").one()
    assert event.level == "WARN"
    assert get_metrics()["external_failure.calendar"] == 1


def test_calendar_exception_is_contained(db, make_lead, sales):
    lead = make_lead()
    calendar = FakeCalendar(raise_on_create=True)

    updated = confirm(db, lead, sales, calendar)

    assert updated.status == "confirmed"
    event = db.query(SystemEvent).filter_by(event_type="calendar.registration_failed").one()
    assert event.payload["error"]["type"] == "RuntimeError"


def test_register_with_calendar_stores_event_ref(db, make_lead, sales):
    lead = make_lead()
    reminder = create_travel_reminder(db, lead, sales.user_id, date(2026, 6, 15))
    db.commit()
    calendar = FakeCalendar()

    event_ref = register_with_calendar(db, reminder, lead, calendar)

    assert event_ref == "evt-1"
    assert db.get(ReminderRecord, reminder.id).calendar_event_id == "evt-1"
    description = calendar.created[0]["description"]
    assert "Travel Date: 2026-06-15" in description
    assert "7-day advance reminder" in description


def test_mark_reminder_triggered(db, make_lead, sales):
    lead = make_lead()
    reminder = create_travel_reminder(db, lead, sales.user_id, date(2026, 6, 15))
    db.commit()

    triggered = mark_reminder_triggered(db, reminder.id)
    assert triggered.status == "triggered"
    assert triggered.triggered_at is not None

    # Repeated callbacks are no-ops
    again = mark_reminder_triggered(db, reminder.id)
    assert again.triggered_at == triggered.triggered_at
    assert db.query(SystemEvent).filter_by(event_type="reminder.triggered").count() == 1


def test_cancelled_reminder_cannot_trigger(db, make_lead, sales):
    lead = make_lead()
    reminder = create_travel_reminder(db, lead, sales.user_id, date(2026, 6, 15))
    reminder.status = "cancelled"
    db.commit()

    with pytest.raises(InvalidTransition):
        mark_reminder_triggered(db, reminder.id)


def test_unknown_reminder(db):
    with pytest.raises(ReminderNotFound):
        mark_reminder_triggered(db, 404)


def test_list_reminders_filters(db, make_lead, sales, other_sales):
    mine = make_lead()
    theirs = make_lead(assigned_to=other_sales.user_id)
    late = create_travel_reminder(db, mine, sales.user_id, date(2026, 9, 1))
    early = create_travel_reminder(db, mine, sales.user_id, date(2026, 7, 1))
    create_travel_reminder(db, theirs, other_sales.user_id, date(2026, 8, 1))
    db.commit()

    assert [r.id for r in list_reminders(db, sales_person_id=sales.user_id)] == [early.id, late.id]
    assert len(list_reminders(db)) == 3
    assert list_reminders(db, status="triggered") == []

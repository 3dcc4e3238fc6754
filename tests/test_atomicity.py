"""
Fault injection on the persistence layer: a lifecycle operation is applied fully or not at all.
"""

from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.db.models import FollowUpEntry, Lead, ReminderRecord
from app.services import ledger
from app.services.errors import PersistenceFailure
from app.services.ledger import LeadAction
from app.services.metrics import get_metrics
from app.services.state_machine import allocate_to_operations, apply_action


def store_down(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("connection reset"))


def confirmation():
    return LeadAction(
        action_type="confirmed_advance_paid",
        itinerary_id="IT-1",
        total_amount=Decimal("1000"),
        advance_amount=Decimal("300"),
        transaction_id="TXN-1",
        travel_date=date(2026, 6, 15),
    )


def assert_untouched(db, lead_id, status="allocated"):
    db.expire_all()
    lead = db.get(Lead, lead_id)
    assert lead.status == status
    assert lead.travel_date is None
    assert lead.travel_month == "2026-06"
    assert db.query(FollowUpEntry).filter_by(lead_id=lead_id).count() == 0
    assert db.query(ReminderRecord).filter_by(lead_id=lead_id).count() == 0


def test_failure_at_commit_rolls_back_everything(db, make_lead, sales, calendar, monkeypatch):
    lead = make_lead()
    monkeypatch.setattr(db, "commit", store_down)

    with pytest.raises(PersistenceFailure):
        apply_action(db, lead.id, confirmation(), sales, calendar=calendar)

    monkeypatch.undo()
    assert_untouched(db, lead.id)
    assert calendar.created == []
    assert get_metrics()["persistence_failure.apply_action"] == 1


def test_failure_in_ledger_append_leaves_status_unchanged(db, make_lead, sales, monkeypatch):
    lead = make_lead()
    monkeypatch.setattr(ledger, "append", store_down)

    with pytest.raises(PersistenceFailure):
        apply_action(
            db,
            lead.id,
            LeadAction(action_type="follow_up", next_follow_up_date=date(2026, 5, 1), next_follow_up_time=time(9, 0)),
            sales,
        )

    monkeypatch.undo()
    assert_untouched(db, lead.id)


def test_failure_creating_reminder_rolls_back_status_and_entry(db, make_lead, sales, monkeypatch):
    lead = make_lead()
    monkeypatch.setattr("app.services.state_machine.create_travel_reminder", store_down)

    with pytest.raises(PersistenceFailure):
        apply_action(db, lead.id, confirmation(), sales)

    monkeypatch.undo()
    assert_untouched(db, lead.id)


def test_operation_can_be_retried_after_failure(db, make_lead, sales, monkeypatch):
    lead = make_lead()
    monkeypatch.setattr(db, "commit", store_down)
    with pytest.raises(PersistenceFailure):
        apply_action(db, lead.id, confirmation(), sales)
    monkeypatch.undo()

    updated = apply_action(db, lead.id, confirmation(), sales)

    assert updated.status == "confirmed"
    assert db.query(FollowUpEntry).filter_by(lead_id=lead.id).count() == 1
    assert db.query(ReminderRecord).filter_by(lead_id=lead.id).count() == 1


def test_allocate_to_operations_rolls_back(db, make_lead, sales, monkeypatch):
    lead = make_lead(status="confirmed")
    monkeypatch.setattr(db, "commit", store_down)

    with pytest.raises(PersistenceFailure):
        allocate_to_operations(db, lead.id, sales)

    monkeypatch.undo()
    db.expire_all()
    assert db.get(Lead, lead.id).status == "confirmed"


def test_persistence_failure_maps_to_503(client, db, make_lead, sales_headers, monkeypatch):
    lead = make_lead()
    monkeypatch.setattr(ledger, "append", store_down)

    response = client.post(
        f"/leads/{lead.id}/actions",
        json={"action_type": "dead", "dead_reason": "Unreachable"},
        headers=sales_headers,
    )

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "PersistenceFailure"
    monkeypatch.undo()
    assert_untouched(db, lead.id)

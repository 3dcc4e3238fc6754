"""
Tests for the follow-up ledger: payload validation, amounts, history and derived views.
"""

from datetime import date, time
from decimal import Decimal

import pytest

from app.db.models import FollowUpEntry
from app.services.errors import ValidationError
from app.services.ledger import (
    LeadAction,
    almost_confirmed_leads,
    append,
    history_for,
    latest_financial_state,
    upcoming_follow_ups,
    validate_action,
)
from app.services.state_machine import apply_action
from app.utils.datetime_utils import utcnow


def confirmation(**overrides):
    values = {
        "action_type": "confirmed_advance_paid",
        "itinerary_id": "IT-1",
        "total_amount": Decimal("1000"),
        "advance_amount": Decimal("300"),
        "transaction_id": "TXN-1",
        "travel_date": date(2026, 6, 15),
    }
    values.update(overrides)
    return LeadAction(**values)


def test_unknown_action_type_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_action(LeadAction(action_type="called_twice"))
    assert exc_info.value.field == "action_type"


@pytest.mark.parametrize("missing", ["next_follow_up_date", "next_follow_up_time"])
def test_follow_up_requires_date_and_time(missing):
    values = {"next_follow_up_date": date(2026, 5, 1), "next_follow_up_time": time(10, 0)}
    values.pop(missing)
    with pytest.raises(ValidationError) as exc_info:
        validate_action(LeadAction(action_type="itinerary_sent", **values))
    assert exc_info.value.field == missing


@pytest.mark.parametrize(
    "field",
    ["itinerary_id", "total_amount", "advance_amount", "transaction_id", "travel_date"],
)
def test_confirmation_requires_every_payload_field(field):
    with pytest.raises(ValidationError) as exc_info:
        validate_action(confirmation(**{field: None}))
    assert exc_info.value.field == field


def test_dead_requires_reason():
    with pytest.raises(ValidationError):
        validate_action(LeadAction(action_type="dead", dead_reason="   "))
    assert validate_action(LeadAction(action_type="dead", dead_reason=" Budget too high "))["dead_reason"] == "Budget too high"


@pytest.mark.parametrize(
    "total,advance",
    [
        ("1000", "-1"),
        ("-5", "0"),
        ("100", "100.01"),
        ("abc", "0"),
        ("Infinity", "0"),
    ],
)
def test_invalid_amounts_rejected(total, advance):
    with pytest.raises(ValidationError):
        validate_action(confirmation(total_amount=total, advance_amount=advance))


@pytest.mark.parametrize(
    "total,advance,due",
    [
        ("1000", "300", "700.00"),
        ("1000", "1000", "0.00"),
        ("0.10", "0.20", None),
        ("12500.50", "2500.25", "10000.25"),
        (1999.99, 0.99, "1999.00"),
    ],
)
def test_due_amount_is_total_minus_advance(total, advance, due):
    if due is None:
        with pytest.raises(ValidationError):
            validate_action(confirmation(total_amount=total, advance_amount=advance))
        return
    values = validate_action(confirmation(total_amount=total, advance_amount=advance))
    assert values["due_amount"] == Decimal(due)
    assert values["total_amount"] - values["advance_amount"] == values["due_amount"]


def test_validate_keeps_only_fields_of_the_action_type():
    action = LeadAction(action_type="almost_confirmed", note="close", dead_reason="ignored", itinerary_id="IT-7")
    assert validate_action(action) == {"note": "close"}


def test_append_records_from_and_to_status(db, make_lead, sales):
    lead = make_lead(status="hot", lead_type="hot")
    now = utcnow()

    entry = append(db, lead, sales, LeadAction(action_type="dead", dead_reason="No reply"), "dead", now=now)
    db.commit()

    assert entry.id is not None
    assert entry.from_status == "hot"
    assert entry.to_status == "dead"
    assert entry.dead_reason == "No reply"


def test_history_newest_first_with_id_tie_break(db, make_lead, sales):
    lead = make_lead()
    now = utcnow()
    first = append(db, lead, sales, LeadAction(action_type="almost_confirmed", note="a"), lead.status, now=now)
    second = append(db, lead, sales, LeadAction(action_type="almost_confirmed", note="b"), lead.status, now=now)
    db.commit()

    history = history_for(db, lead.id)

    assert [e.id for e in history] == [second.id, first.id]


def test_entries_are_point_in_time_snapshots(db, make_lead, sales):
    lead = make_lead()
    apply_action(db, lead.id, confirmation(), sales)
    first = latest_financial_state(db, lead.id)
    assert first.due_amount == Decimal("700.00")

    # A later entry with new amounts does not touch the earlier one
    append(
        db,
        lead,
        sales,
        confirmation(total_amount=Decimal("1500"), advance_amount=Decimal("500"), transaction_id="TXN-2"),
        lead.status,
    )
    db.commit()

    latest = latest_financial_state(db, lead.id)
    assert latest.total_amount == Decimal("1500.00")
    assert latest.due_amount == Decimal("1000.00")
    assert latest.transaction_id == "TXN-2"
    assert db.get(FollowUpEntry, first.entry_id).due_amount == Decimal("700.00")


def test_latest_financial_state_none_without_amounts(db, make_lead, sales):
    lead = make_lead()
    apply_action(
        db,
        lead.id,
        LeadAction(action_type="follow_up", next_follow_up_date=date(2026, 5, 1), next_follow_up_time=time(9, 0)),
        sales,
    )
    assert latest_financial_state(db, lead.id) is None


def test_upcoming_follow_ups_use_latest_schedule(db, make_lead, sales, other_sales):
    mine = make_lead()
    theirs = make_lead(assigned_to=other_sales.user_id, contact_number="+911111111111")
    apply_action(
        db, mine.id,
        LeadAction(action_type="follow_up", next_follow_up_date=date(2026, 5, 1), next_follow_up_time=time(9, 0)),
        sales,
    )
    apply_action(
        db, mine.id,
        LeadAction(action_type="itinerary_sent", next_follow_up_date=date(2026, 5, 4), next_follow_up_time=time(15, 30)),
        sales,
    )
    apply_action(
        db, theirs.id,
        LeadAction(action_type="follow_up", next_follow_up_date=date(2026, 5, 2), next_follow_up_time=time(9, 0)),
        other_sales,
    )

    rows = upcoming_follow_ups(db, sales_person_id=sales.user_id)

    assert len(rows) == 1
    lead, entry = rows[0]
    assert lead.id == mine.id
    assert entry.action_type == "itinerary_sent"
    assert entry.next_follow_up_date == date(2026, 5, 4)

    everyone = upcoming_follow_ups(db)
    assert [lead.id for lead, _ in everyone] == [theirs.id, mine.id]
    assert upcoming_follow_ups(db, on_date=date(2026, 5, 2))[0][0].id == theirs.id
    assert upcoming_follow_ups(db, on_date=date(2026, 5, 1)) == []


def test_upcoming_follow_ups_skip_closed_leads(db, make_lead, sales):
    lead = make_lead()
    apply_action(
        db, lead.id,
        LeadAction(action_type="follow_up", next_follow_up_date=date(2026, 5, 1), next_follow_up_time=time(9, 0)),
        sales,
    )
    apply_action(db, lead.id, LeadAction(action_type="dead", dead_reason="Went elsewhere"), sales)

    assert upcoming_follow_ups(db, sales_person_id=sales.user_id) == []


def test_almost_confirmed_leads(db, make_lead, sales):
    marked = make_lead()
    unmarked = make_lead(contact_number="+912222222222")
    closed = make_lead(contact_number="+913333333333")
    apply_action(db, marked.id, LeadAction(action_type="almost_confirmed"), sales)
    apply_action(db, closed.id, LeadAction(action_type="almost_confirmed"), sales)
    apply_action(db, closed.id, LeadAction(action_type="dead", dead_reason="Cancelled trip"), sales)

    leads = almost_confirmed_leads(db, sales_person_id=sales.user_id)

    assert [lead.id for lead in leads] == [marked.id]
    assert unmarked.id not in [lead.id for lead in leads]


@pytest.mark.parametrize(
    "total,advance,field",
    [
        ("1000.005", "300", "total_amount"),
        ("1000", "300.004", "advance_amount"),
        (0.1 + 0.2, "0", "total_amount"),
    ],
)
def test_sub_cent_amounts_rejected(total, advance, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_action(confirmation(total_amount=total, advance_amount=advance))
    assert exc_info.value.field == field


@pytest.mark.parametrize("total", ["10000000000", "1e10", "1e30"])
def test_amounts_beyond_column_precision_rejected(total):
    with pytest.raises(ValidationError) as exc_info:
        validate_action(confirmation(total_amount=total, advance_amount="0"))
    assert exc_info.value.field == "total_amount"


def test_largest_storable_amount_accepted():
    values = validate_action(confirmation(total_amount="9999999999.99", advance_amount="0.99"))
    assert values["due_amount"] == Decimal("9999999999.00")


def test_trailing_zeros_are_not_sub_cent():
    values = validate_action(confirmation(total_amount="1000.500", advance_amount="0.0"))
    assert values["total_amount"] == Decimal("1000.50")

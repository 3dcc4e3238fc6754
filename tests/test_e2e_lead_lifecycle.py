"""
End-to-end lifecycle scenarios through the HTTP API.
"""

from datetime import date

from app.db.models import FollowUpEntry, Notification, ReminderRecord


def test_allocated_to_confirmed_with_reminder(client, db, calendar, admin_headers, sales_headers):
    # Admin assigns the lead
    created = client.post(
        "/leads",
        json={
            "client_name": "Kavya Menon",
            "contact_number": "9123456780",
            "country_code": "+91",
            "no_of_pax": 2,
            "place": "Bali",
            "travel_month": "2026-06",
            "expected_budget": "200000",
            "assigned_to": "sales-1",
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    lead_id = created.json()["id"]
    assert created.json()["status"] == "allocated"

    # Follow-up with a next date and time
    followed = client.post(
        f"/leads/{lead_id}/actions",
        json={
            "action_type": "follow_up",
            "next_follow_up_date": "2026-05-10",
            "next_follow_up_time": "11:00",
            "note": "Wants a villa",
        },
        headers=sales_headers,
    )
    assert followed.status_code == 200
    assert followed.json()["status"] == "follow_up"

    # Confirmation with advance paid
    confirmed = client.post(
        f"/leads/{lead_id}/actions",
        json={
            "action_type": "confirmed_advance_paid",
            "itinerary_id": "IT-BALI-1",
            "total_amount": "1000",
            "advance_amount": "300",
            "transaction_id": "UPI-123",
            "travel_date": "2026-06-15",
        },
        headers=sales_headers,
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["travel_date"] == "2026-06-15"

    history = client.get(f"/leads/{lead_id}/history", headers=sales_headers).json()
    assert [entry["action_type"] for entry in history] == ["confirmed_advance_paid", "follow_up"]
    assert history[0]["due_amount"] == "700.00"
    assert history[0]["from_status"] == "follow_up"
    assert history[0]["to_status"] == "confirmed"

    reminders = client.get("/reminders", headers=sales_headers).json()
    assert len(reminders) == 1
    assert reminders[0]["reminder_date"] == "2026-06-08"
    assert reminders[0]["reminder_time"] == "09:00:00"
    assert reminders[0]["status"] == "pending"
    assert reminders[0]["calendar_event_id"] == "evt-1"

    reminder = db.query(ReminderRecord).filter_by(lead_id=lead_id).one()
    assert reminder.travel_date - reminder.reminder_date == date(2026, 6, 15) - date(2026, 6, 8)
    types = [n.type for n in db.query(Notification).filter_by(user_id="sales-1").order_by(Notification.id)]
    assert types == ["lead_assigned", "follow_up_scheduled", "lead_confirmed"]


def test_hot_lead_dead_then_every_action_rejected(client, db, hot_lead, sales_headers):
    dead = client.post(
        f"/leads/{hot_lead.id}/actions",
        json={"action_type": "dead", "dead_reason": "Budget too high"},
        headers=sales_headers,
    )
    assert dead.status_code == 200
    assert dead.json()["status"] == "dead"
    assert dead.json()["allowed_actions"] == []

    attempts = [
        {"action_type": "follow_up", "next_follow_up_date": "2026-05-01", "next_follow_up_time": "10:00"},
        {"action_type": "itinerary_sent", "next_follow_up_date": "2026-05-01", "next_follow_up_time": "10:00"},
        {
            "action_type": "confirmed_advance_paid",
            "itinerary_id": "IT-1",
            "total_amount": "10",
            "advance_amount": "1",
            "transaction_id": "T",
            "travel_date": "2026-08-10",
        },
        {"action_type": "dead", "dead_reason": "Again"},
        {"action_type": "almost_confirmed"},
    ]
    for body in attempts:
        response = client.post(f"/leads/{hot_lead.id}/actions", json=body, headers=sales_headers)
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "InvalidTransition"

    entries = db.query(FollowUpEntry).filter_by(lead_id=hot_lead.id).all()
    assert len(entries) == 1
    assert entries[0].dead_reason == "Budget too high"


def test_bare_contact_to_operations(client, sales_headers):
    lead_id = client.post(
        "/leads/contacts", json={"contact_number": "9988776655"}, headers=sales_headers
    ).json()["id"]
    client.post(
        f"/leads/{lead_id}/qualify",
        json={
            "client_name": "Arjun Nair",
            "no_of_pax": 5,
            "place": "Dubai",
            "travel_month": "2026-10",
            "expected_budget": "400000",
        },
        headers=sales_headers,
    )
    client.post(f"/leads/{lead_id}/actions", json={"action_type": "almost_confirmed"}, headers=sales_headers)
    confirmed = client.post(
        f"/leads/{lead_id}/actions",
        json={
            "action_type": "confirmed_advance_paid",
            "itinerary_id": "IT-DXB",
            "total_amount": "400000",
            "advance_amount": "100000",
            "transaction_id": "NEFT-9",
            "travel_date": "2026-10-05",
            "reminder_time": "07:30",
        },
        headers=sales_headers,
    )
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["travel_month"] is None

    handed_over = client.post(f"/leads/{lead_id}/allocate-to-operations", headers=sales_headers)

    assert handed_over.json()["status"] == "allocated_to_operations"
    reminders = client.get(f"/reminders?lead_id={lead_id}", headers=sales_headers).json()
    assert reminders[0]["reminder_date"] == "2026-09-28"
    assert reminders[0]["reminder_time"] == "07:30:00"

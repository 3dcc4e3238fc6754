"""
Tests for correlation IDs on requests and system events.
"""

import logging
import uuid

import pytest

from app.db.models import SystemEvent
from app.middleware.correlation_id import CorrelationIdFilter, set_correlation_id


def test_response_carries_generated_correlation_id(client):
    response = client.get("/health")

    cid = response.headers["X-Correlation-ID"]
    try:
        uuid.UUID(cid)
    except ValueError:
        pytest.fail("Correlation ID is not a valid UUID")


def test_incoming_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "req-abc-123"})
    assert response.headers["X-Correlation-ID"] == "req-abc-123"


def test_oversized_correlation_id_is_replaced(client):
    response = client.get("/health", headers={"X-Correlation-ID": "x" * 200})
    assert response.headers["X-Correlation-ID"] != "x" * 200


def test_correlation_id_in_system_events(client, db, make_lead, sales_headers):
    lead = make_lead()
    headers = {**sales_headers, "X-Correlation-ID": "trace-42"}

    response = client.post(
        f"/leads/{lead.id}/actions",
        json={"action_type": "dead", "dead_reason": "Chose another agency"},
        headers=headers,
    )

    assert response.status_code == 200
    event = db.query(SystemEvent).filter_by(event_type="lead.transition").one()
    assert event.payload["correlation_id"] == "trace-42"


def test_log_filter_adds_correlation_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    set_correlation_id("log-7")
    try:
        CorrelationIdFilter().filter(record)
    finally:
        set_correlation_id(None)
    assert record.correlation_id == "log-7"

    CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"

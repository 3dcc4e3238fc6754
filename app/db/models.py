from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_type: Mapped[str] = mapped_column(String(20), default="normal")  # normal, urgent, hot
    status: Mapped[str] = mapped_column(String(32), default="allocated", index=True)

    # Client details
    client_name: Mapped[str] = mapped_column(String(200))
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    no_of_pax: Mapped[int] = mapped_column(Integer, default=0)
    place: Mapped[str] = mapped_column(String(200))

    # Exactly one of these is set once the lead leaves added_by_sales
    travel_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    travel_month: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    expected_budget: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Ownership
    assigned_to: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    assigned_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # null when self-added
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Status timestamps
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    qualified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    dead_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    allocated_to_operations_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    follow_ups: Mapped[list["FollowUpEntry"]] = relationship(
        "FollowUpEntry", back_populates="lead", order_by="FollowUpEntry.id"
    )
    reminders: Mapped[list["ReminderRecord"]] = relationship("ReminderRecord", back_populates="lead")


class FollowUpEntry(Base):
    """Append-only ledger row - one per action recorded against a lead."""

    __tablename__ = "follow_up_entries"
    __table_args__ = (Index("ix_follow_up_entries_lead_created", "lead_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_id: Mapped[int] = mapped_column(Integer, ForeignKey("leads.id"), index=True)
    action_type: Mapped[str] = mapped_column(String(32), index=True)
    actor_id: Mapped[str] = mapped_column(String(64), index=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Transition caused by this entry (equal for annotation-only entries)
    from_status: Mapped[str] = mapped_column(String(32))
    to_status: Mapped[str] = mapped_column(String(32))

    # follow_up-class payload
    next_follow_up_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_follow_up_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    # confirmed_advance_paid payload (point-in-time snapshot)
    itinerary_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    advance_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    due_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    travel_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # dead payload
    dead_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    lead: Mapped["Lead"] = relationship("Lead", back_populates="follow_ups")


class ReminderRecord(Base):
    """Travel reminder derived from a confirmed travel date."""

    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_id: Mapped[int] = mapped_column(Integer, ForeignKey("leads.id"), index=True)
    sales_person_id: Mapped[str] = mapped_column(String(64), index=True)
    travel_date: Mapped[date] = mapped_column(Date)
    reminder_date: Mapped[date] = mapped_column(Date, index=True)
    reminder_time: Mapped[time] = mapped_column(Time)
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, triggered, cancelled
    triggered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    lead: Mapped["Lead"] = relationship("Lead", back_populates="reminders")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(40))
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leads.id"), nullable=True, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False)  # Arrived during do-not-disturb
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    do_not_disturb_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    do_not_disturb_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    do_not_disturb_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    notification_type_filter: Mapped[str] = mapped_column(String(20), default="all")  # all, hot_only
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SystemEvent(Base):
    """Structured operational events (transitions, collaborator failures)."""

    __tablename__ = "system_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    level: Mapped[str] = mapped_column(String(10), index=True)  # INFO, WARN, ERROR
    event_type: Mapped[str] = mapped_column(String(100), index=True)
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leads.id"), nullable=True, index=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

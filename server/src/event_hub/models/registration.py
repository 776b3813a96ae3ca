"""SQLModel Registration model"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Column
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


class PaymentStatus(str, enum.Enum):
    # Sentinel stored for free events in place of payment ids
    FREE_EVENT = "free_event"
    PAID = "paid"


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Registration(SQLModel, table=True):
    """A user's signup for an event with their form answers"""

    __tablename__ = "registrations"
    __table_args__ = (
        # Paid rows need a payment id, free rows must not have one
        CheckConstraint(
            "(payment_status = 'paid' AND payment_id IS NOT NULL) OR "
            "(payment_status = 'free_event' AND payment_id IS NULL "
            "AND payment_order_id IS NULL)",
            name="ck_registrations_payment_fields",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    event_id: uuid.UUID = Field(foreign_key="events.id", index=True)
    user_id: str = Field(index=True)
    form_data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    payment_status: PaymentStatus = Field(
        sa_column=Column(
            SAEnum(
                PaymentStatus,
                name="payment_status",
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
        )
    )
    payment_order_id: Optional[str] = None
    payment_id: Optional[str] = Field(default=None, index=True)
    status: RegistrationStatus = Field(
        default=RegistrationStatus.PENDING,
        sa_column=Column(
            SAEnum(
                RegistrationStatus,
                name="registration_status",
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            server_default=RegistrationStatus.PENDING.value,
        ),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

"""SQLModel Event model"""

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Column
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Event(SQLModel, table=True):
    """Event created by an organizer"""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "ticket_price IS NULL OR ticket_price >= 0",
            name="ck_events_ticket_price_non_negative",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True)  # Organizer's auth user ID
    title: str
    description: str = Field(default="")
    location: Optional[str] = None
    event_date: Optional[date] = None
    # NULL or 0 means the event is free
    ticket_price: Optional[Decimal] = Field(
        default=None, max_digits=10, decimal_places=2
    )
    status: EventStatus = Field(
        default=EventStatus.DRAFT,
        sa_column=Column(
            SAEnum(
                EventStatus,
                name="event_status",
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            server_default=EventStatus.DRAFT.value,
        ),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_free(self) -> bool:
        return not self.ticket_price or self.ticket_price <= 0

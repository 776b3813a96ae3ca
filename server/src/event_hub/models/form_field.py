"""SQLModel FormField model for per-event registration fields"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlmodel import Field, SQLModel

from event_hub.models.field_type import FieldType


class FormField(SQLModel, table=True):
    """One input on an event's registration form"""

    __tablename__ = "form_fields"
    __table_args__ = (
        UniqueConstraint("event_id", "field_name", name="uq_form_fields_event_name"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    event_id: uuid.UUID = Field(
        foreign_key="events.id", ondelete="CASCADE", index=True
    )
    field_name: str  # Key in the submitted form data (e.g., 'tshirt_size')
    field_type: FieldType = Field(
        sa_column=Column(
            SQLEnum(
                FieldType,
                name="field_type",
                values_callable=lambda x: [e.value for e in x],
            ),
            nullable=False,
        )
    )
    label: str  # Display label (e.g., 'T-shirt size')
    placeholder: Optional[str] = None
    is_required: bool = Field(default=False)
    options: Optional[List[str]] = Field(
        default=None, sa_column=Column(JSON)
    )  # For select fields
    field_order: int = Field(default=0)  # Render and validation order
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

"""Init events, form fields and registrations

Revision ID: 3f9d2c41a7b0
Revises:
Create Date: 2025-11-02 10:14:37.118204

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9d2c41a7b0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

event_status = sa.Enum("draft", "published", "archived", name="event_status")
field_type = sa.Enum(
    "text",
    "textarea",
    "email",
    "number",
    "date",
    "select",
    "checkbox",
    name="field_type",
)
payment_status = sa.Enum("free_event", "paid", name="payment_status")
registration_status = sa.Enum(
    "pending", "confirmed", "cancelled", name="registration_status"
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("title", sa.VARCHAR(), nullable=False),
        sa.Column("description", sa.VARCHAR(), nullable=False),
        sa.Column("location", sa.VARCHAR(), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("ticket_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("status", event_status, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "ticket_price IS NULL OR ticket_price >= 0",
            name="ck_events_ticket_price_non_negative",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_events_user_id"), "events", ["user_id"], unique=False)

    op.create_table(
        "form_fields",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("field_name", sa.VARCHAR(), nullable=False),
        sa.Column("field_type", field_type, nullable=False),
        sa.Column("label", sa.VARCHAR(), nullable=False),
        sa.Column("placeholder", sa.VARCHAR(), nullable=True),
        sa.Column("is_required", sa.BOOLEAN(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("field_order", sa.INTEGER(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "event_id", "field_name", name="uq_form_fields_event_name"
        ),
    )
    op.create_index(
        op.f("ix_form_fields_event_id"), "form_fields", ["event_id"], unique=False
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("form_data", sa.JSON(), nullable=True),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("payment_order_id", sa.VARCHAR(), nullable=True),
        sa.Column("payment_id", sa.VARCHAR(), nullable=True),
        sa.Column(
            "status", registration_status, nullable=False, server_default="pending"
        ),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        # Paid rows need a payment id, free rows must not have one
        sa.CheckConstraint(
            "(payment_status = 'paid' AND payment_id IS NOT NULL) OR "
            "(payment_status = 'free_event' AND payment_id IS NULL "
            "AND payment_order_id IS NULL)",
            name="ck_registrations_payment_fields",
        ),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_registrations_event_id"), "registrations", ["event_id"], unique=False
    )
    op.create_index(
        op.f("ix_registrations_user_id"), "registrations", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_registrations_payment_id"),
        "registrations",
        ["payment_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_registrations_payment_id"), table_name="registrations")
    op.drop_index(op.f("ix_registrations_user_id"), table_name="registrations")
    op.drop_index(op.f("ix_registrations_event_id"), table_name="registrations")
    op.drop_table("registrations")
    op.drop_index(op.f("ix_form_fields_event_id"), table_name="form_fields")
    op.drop_table("form_fields")
    op.drop_index(op.f("ix_events_user_id"), table_name="events")
    op.drop_table("events")

    bind = op.get_bind()
    for enum_type in (registration_status, payment_status, field_type, event_status):
        enum_type.drop(bind, checkfirst=True)

"""FormField service for managing per-event registration form schemas"""

import logging
import uuid
from typing import List

from sqlalchemy import delete
from sqlmodel import Session, select

from event_hub.models.field_type import FieldType
from event_hub.models.form_field import FormField

logger = logging.getLogger(__name__)


class FormFieldService:
    """Service for managing form fields"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _build_fields(
        self, event_id: uuid.UUID, custom_fields: List[dict]
    ) -> List[FormField]:
        # Stable sort keeps list position as the tie-breaker for equal orders
        indexed = sorted(
            enumerate(custom_fields),
            key=lambda item: item[1].get("field_order", item[0]),
        )

        seen_names = set()
        fields = []
        for position, (_, field_data) in enumerate(indexed):
            field_name = (field_data.get("field_name") or "").strip()
            label = (field_data.get("label") or "").strip()
            if not field_name:
                raise ValueError("Every field needs a field_name")
            if not label:
                raise ValueError(f"Field '{field_name}' needs a label")
            if field_name in seen_names:
                raise ValueError(f"Duplicate field_name '{field_name}'")
            seen_names.add(field_name)

            try:
                field_type = FieldType(field_data.get("field_type", "text"))
            except ValueError:
                raise ValueError(
                    f"Unsupported field_type '{field_data.get('field_type')}' "
                    f"for field '{field_name}'"
                )

            options = field_data.get("options")
            if field_type == FieldType.SELECT and not options:
                raise ValueError(f"Select field '{field_name}' needs options")

            fields.append(
                FormField(
                    event_id=event_id,
                    field_name=field_name,
                    field_type=field_type,
                    label=label,
                    placeholder=field_data.get("placeholder"),
                    is_required=bool(field_data.get("is_required", False)),
                    options=options if field_type == FieldType.SELECT else None,
                    field_order=position,
                )
            )
        return fields

    def replace_form_fields(
        self, event_id: uuid.UUID, custom_fields: List[dict]
    ) -> List[FormField]:
        """
        Replace an event's whole form schema with a new field list

        Fields are stored with dense field_order values following the
        requested order; equal requested orders keep their list position.

        Args:
            event_id: UUID of the event
            custom_fields: Field dictionaries from the form builder

        Returns:
            The stored FormField instances in render order

        Raises:
            ValueError: If a field definition is invalid
        """
        fields = self._build_fields(event_id, custom_fields)

        try:
            self.db.execute(delete(FormField).where(FormField.event_id == event_id))
            for form_field in fields:
                self.db.add(form_field)
            self.db.commit()
            for form_field in fields:
                self.db.refresh(form_field)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error saving form fields for event {event_id}: {e}")
            raise

        logger.info(f"Saved {len(fields)} form fields for event {event_id}")
        return fields

    def get_fields_by_event_id(self, event_id: uuid.UUID) -> List[FormField]:
        """
        Get all form fields for an event, ordered by field_order

        Args:
            event_id: UUID of the event

        Returns:
            List of FormField instances in render order
        """
        statement = (
            select(FormField)
            .where(FormField.event_id == event_id)
            .order_by(FormField.field_order, FormField.created_at)
        )
        fields = list(self.db.exec(statement).all())

        logger.info(f"Retrieved {len(fields)} form fields for event {event_id}")
        return fields

"""Registration service for writing and reading registration rows"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from event_hub.models.registration import PaymentStatus, Registration

logger = logging.getLogger(__name__)


class RegistrationService:
    """Service for managing event registrations"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create_registration(
        self,
        event_id: uuid.UUID,
        user_id: str,
        form_data: dict,
        payment_order_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        paid: bool = False,
    ) -> Registration:
        """
        Insert one registration row.

        A paid registration must carry a payment id; a free one is stored with
        the FREE_EVENT marker and no payment fields. No deduplication is done:
        every call inserts a new row.

        Args:
            event_id: UUID of the event
            user_id: Auth user ID of the registrant
            form_data: Plain JSON record of the submitted answers
            payment_order_id: Gateway order id (paid events only)
            payment_id: Gateway payment id (paid events only)
            paid: Whether the event required payment

        Returns:
            Registration: The created registration

        Raises:
            ValueError: If payment fields contradict the paid flag
        """
        if paid and not payment_id:
            raise ValueError("Paid registration requires a payment id")
        if not paid and (payment_id or payment_order_id):
            raise ValueError("Free registration must not carry payment fields")

        registration = Registration(
            event_id=event_id,
            user_id=user_id,
            form_data=form_data,
            payment_status=PaymentStatus.PAID if paid else PaymentStatus.FREE_EVENT,
            payment_order_id=payment_order_id if paid else None,
            payment_id=payment_id if paid else None,
        )

        try:
            self.db.add(registration)
            self.db.commit()
            self.db.refresh(registration)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating registration for event {event_id}: {e}")
            raise

        logger.info(f"Created registration {registration.id} for event {event_id}")
        return registration

    def get_registration_by_id(
        self, registration_id: uuid.UUID
    ) -> Optional[Registration]:
        """Get a registration by ID"""
        return self.db.get(Registration, registration_id)

    def get_registrations_for_event(self, event_id: uuid.UUID) -> list[Registration]:
        """Get all registrations for an event, newest first"""
        stmt = (
            select(Registration)
            .where(Registration.event_id == event_id)
            .order_by(Registration.created_at.desc())
        )
        return list(self.db.exec(stmt).all())

    def get_registration_count_for_event(self, event_id: uuid.UUID) -> int:
        """Get the total number of registrations for an event"""
        stmt = (
            select(func.count())
            .select_from(Registration)
            .where(Registration.event_id == event_id)
        )
        return self.db.exec(stmt).one()

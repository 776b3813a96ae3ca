"""Event Service - Handles event database operations"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Session

from event_hub.models.event import Event

logger = logging.getLogger(__name__)


class EventService:
    """Service for reading and creating events"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create_event(self, event: Event) -> Event:
        """
        Persist a new event

        Args:
            event: Event object to create

        Returns:
            The stored Event

        Raises:
            ValueError: If the ticket price is negative
        """
        if event.ticket_price is not None and event.ticket_price < 0:
            raise ValueError("Ticket price cannot be negative")

        try:
            now = datetime.now(timezone.utc)
            event.created_at = event.created_at or now
            event.updated_at = now

            self.db.add(event)
            self.db.commit()
            self.db.refresh(event)

            logger.info(f"Event created successfully: {event.id}")
            return event

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating event: {e}")
            raise

    def get_event(self, event_id: uuid.UUID) -> Optional[Event]:
        """Get an event by ID, None when it does not exist"""
        return self.db.get(Event, event_id)

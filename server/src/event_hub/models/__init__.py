"""Database models for Event Hub"""

from event_hub.models.event import Event, EventStatus
from event_hub.models.form_field import FormField
from event_hub.models.registration import (
    PaymentStatus,
    Registration,
    RegistrationStatus,
)

__all__ = [
    "Event",
    "EventStatus",
    "FormField",
    "Registration",
    "PaymentStatus",
    "RegistrationStatus",
]

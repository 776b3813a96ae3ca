"""In-progress registration flow (kept in Redis, not in the database)"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from event_hub.services.form_renderer import DynamicFormData


class RegistrationState(str, enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PAYMENT_REQUIRED = "payment_required"
    PAYING = "paying"
    FINALIZING = "finalizing"
    SUCCESS = "success"
    ERROR = "error"


class RegistrationFlow(BaseModel):
    """Snapshot of one user's registration attempt for one event.

    ``form_data`` is the single-slot holder for validated answers: each
    submission overwrites it, it is never queued.
    """

    flow_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_id: uuid.UUID
    user_id: str
    state: RegistrationState = RegistrationState.IDLE
    form_data: Optional[DynamicFormData] = None
    order_id: Optional[str] = None
    amount: Optional[int] = None  # minor units
    currency: Optional[str] = None
    payment_id: Optional[str] = None
    registration_id: Optional[uuid.UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

"""Organizer endpoints: events, form builder, registrations list"""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from event_hub.auth.dependencies import get_current_user
from event_hub.auth.models import User
from event_hub.models.database import get_db
from event_hub.models.event import Event, EventStatus
from event_hub.models.field_type import FieldType
from event_hub.services.event_service import EventService
from event_hub.services.form_field_service import FormFieldService
from event_hub.services.form_renderer import render_form
from event_hub.services.registration_service import RegistrationService

router = APIRouter(prefix="/events", tags=["events"])


class EventCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    location: Optional[str] = None
    event_date: Optional[date] = None
    ticket_price: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    status: EventStatus = EventStatus.DRAFT


class FormFieldRequest(BaseModel):
    field_name: str = Field(min_length=1, max_length=100)
    label: str = Field(min_length=1, max_length=200)
    field_type: FieldType = FieldType.TEXT
    is_required: bool = False
    placeholder: Optional[str] = None
    options: Optional[List[str]] = None
    field_order: Optional[int] = None


class FormSchemaRequest(BaseModel):
    fields: List[FormFieldRequest]


def _event_payload(event: Event) -> dict:
    return {
        "id": str(event.id),
        "user_id": event.user_id,
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "event_date": event.event_date.isoformat() if event.event_date else None,
        "ticket_price": str(event.ticket_price) if event.ticket_price else None,
        "is_free": event.is_free,
        "status": event.status.value,
    }


def _get_event_or_404(db: Session, event_id: uuid.UUID) -> Event:
    event = EventService(db).get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def _require_organizer(event: Event, user: User) -> None:
    if event.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the event organizer can do this",
        )


@router.post("", status_code=201)
async def create_event(
    request: EventCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    event = Event(user_id=user.user_id, **request.model_dump())
    try:
        event = EventService(db).create_event(event)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _event_payload(event)


@router.get("/{event_id}")
async def get_event(event_id: uuid.UUID, db: Session = Depends(get_db)):
    return _event_payload(_get_event_or_404(db, event_id))


@router.get("/{event_id}/form")
async def get_event_form(event_id: uuid.UUID, db: Session = Depends(get_db)):
    """Render plan for the event's registration form"""
    _get_event_or_404(db, event_id)
    fields = FormFieldService(db).get_fields_by_event_id(event_id)
    return {
        "event_id": str(event_id),
        "fields": [f.model_dump(mode="json") for f in render_form(fields)],
    }


@router.put("/{event_id}/form")
async def save_event_form(
    event_id: uuid.UUID,
    schema: FormSchemaRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Form builder: replace the whole field list of an event"""
    event = _get_event_or_404(db, event_id)
    _require_organizer(event, user)

    try:
        fields = FormFieldService(db).replace_form_fields(
            event_id,
            [f.model_dump(exclude_none=True) for f in schema.fields],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "event_id": str(event_id),
        "fields": [f.model_dump(mode="json") for f in render_form(fields)],
    }


@router.get("/{event_id}/registrations")
async def list_event_registrations(
    event_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Registrations for an organizer's event, newest first"""
    event = _get_event_or_404(db, event_id)
    _require_organizer(event, user)

    registrations = RegistrationService(db).get_registrations_for_event(event_id)
    return {
        "event_id": str(event_id),
        "count": len(registrations),
        "registrations": [
            {
                "id": str(r.id),
                "user_id": r.user_id,
                "form_data": r.form_data,
                "payment_status": r.payment_status.value,
                "payment_order_id": r.payment_order_id,
                "payment_id": r.payment_id,
                "status": r.status.value,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in registrations
        ],
    }

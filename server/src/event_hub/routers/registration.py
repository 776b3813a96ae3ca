"""Registration flow endpoints: start, submit, checkout, payment callback"""

import logging
import uuid
from typing import Any, Dict, Optional

import redis
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from event_hub.auth.dependencies import get_current_user_optional
from event_hub.auth.models import User
from event_hub.backends.razorpay_client import RazorpayClient
from event_hub.config import config
from event_hub.exceptions import RegistrationError
from event_hub.models.database import get_db, get_redis
from event_hub.models.registration_flow import RegistrationFlow
from event_hub.services.event_service import EventService
from event_hub.services.form_field_service import FormFieldService
from event_hub.services.form_renderer import render_form
from event_hub.services.payment_service import get_payment_gateway
from event_hub.services.registration_flow_store import RegistrationFlowStore
from event_hub.services.registration_service import RegistrationService
from event_hub.services.registration_workflow import (
    PaymentConfirmation,
    RegistrationWorkflow,
)

router = APIRouter(tags=["registration"])

logger = logging.getLogger(__name__)


class SubmissionRequest(BaseModel):
    values: Dict[str, Any] = {}


def get_registration_workflow(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
    payment_gateway: RazorpayClient = Depends(get_payment_gateway),
    current_user: Optional[User] = Depends(get_current_user_optional),
) -> RegistrationWorkflow:
    """Assemble a workflow with its collaborators for the current request"""
    return RegistrationWorkflow(
        event_service=EventService(db),
        form_field_service=FormFieldService(db),
        registration_service=RegistrationService(db),
        flow_store=RegistrationFlowStore(
            redis_client,
            ttl_seconds=config["registration_flow_ttl_seconds"],
            payment_ttl_seconds=config["registration_payment_ttl_seconds"],
        ),
        payment_gateway=payment_gateway,
        current_user=current_user,
        currency=config["payment_currency"],
        verify_payments=config["verify_payment_signature"],
    )


def _http_error(error: RegistrationError) -> HTTPException:
    if error.status_code >= 500:
        logger.error(f"Registration flow error: {error.error_code}: {error.message}")
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
    return HTTPException(
        status_code=error.status_code, detail=error.to_detail(), headers=headers
    )


def _flow_payload(flow: RegistrationFlow) -> Dict[str, Any]:
    return {
        "flow_id": flow.flow_id,
        "event_id": str(flow.event_id),
        "state": flow.state.value,
        "form_data": flow.form_data.as_record() if flow.form_data else None,
        "order_id": flow.order_id,
        "amount": flow.amount,
        "currency": flow.currency,
        "payment_id": flow.payment_id,
        "registration_id": str(flow.registration_id) if flow.registration_id else None,
        "error": flow.error_code,
        "message": flow.error_message,
    }


@router.post("/events/{event_id}/registrations", status_code=201)
async def start_registration(
    event_id: uuid.UUID,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    """Open a registration flow and return the event's form to fill in"""
    try:
        flow = workflow.start(event_id)
    except RegistrationError as e:
        raise _http_error(e)

    event = workflow.event_service.get_event(event_id)
    fields = workflow.form_field_service.get_fields_by_event_id(event_id)

    return {
        **_flow_payload(flow),
        "event": {
            "id": str(event.id),
            "title": event.title,
            "description": event.description,
            "ticket_price": str(event.ticket_price) if event.ticket_price else None,
            "is_free": event.is_free,
        },
        "fields": [f.model_dump(mode="json") for f in render_form(fields)],
    }


@router.get("/registrations/flows/{flow_id}")
async def get_registration_flow(
    flow_id: str,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    try:
        return _flow_payload(workflow.get_flow(flow_id))
    except RegistrationError as e:
        raise _http_error(e)


@router.post("/registrations/flows/{flow_id}/submit")
async def submit_registration(
    flow_id: str,
    submission: SubmissionRequest,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    """Validate answers; finalize free events, create an order for paid ones"""
    try:
        flow = await workflow.submit(flow_id, submission.values)
    except RegistrationError as e:
        raise _http_error(e)
    return _flow_payload(flow)


@router.post("/registrations/flows/{flow_id}/retry")
async def retry_registration(
    flow_id: str,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    """Retry order creation or a failed free write using the held answers"""
    try:
        flow = await workflow.retry(flow_id)
    except RegistrationError as e:
        raise _http_error(e)
    return _flow_payload(flow)


@router.post("/registrations/flows/{flow_id}/checkout")
async def open_checkout(
    flow_id: str,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    try:
        options = workflow.begin_checkout(flow_id)
        flow = workflow.get_flow(flow_id)
    except RegistrationError as e:
        raise _http_error(e)
    return {**_flow_payload(flow), "checkout": options}


@router.post("/registrations/flows/{flow_id}/dismiss")
async def dismiss_checkout(
    flow_id: str,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    try:
        flow = workflow.dismiss_checkout(flow_id)
    except RegistrationError as e:
        raise _http_error(e)
    return _flow_payload(flow)


@router.post("/registrations/flows/{flow_id}/payment")
async def complete_payment(
    flow_id: str,
    confirmation: PaymentConfirmation,
    workflow: RegistrationWorkflow = Depends(get_registration_workflow),
):
    """Checkout success callback from the client"""
    try:
        flow = workflow.complete_payment(flow_id, confirmation)
    except RegistrationError as e:
        raise _http_error(e)
    return _flow_payload(flow)

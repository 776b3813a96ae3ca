"""Registration workflow: form submission, optional payment, finalize.

States::

    idle -> collecting -> finalizing                                -> success | error
                       -> payment_required -> paying -> finalizing  -> success | error

Free events go straight from a validated submission to finalizing. Paid
events hold the validated answers in the flow snapshot, create a gateway
order for ``price x 100`` minor units and wait for the checkout callback.
A failed write after a successful payment ends in a terminal error that
carries the payment id for manual reconciliation; it is never retried here.
The same happens when a payment arrives for a flow that can no longer be
loaded. Flow store failures elsewhere surface as FlowStoreError.
"""

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional

import redis
from pydantic import BaseModel

from event_hub.auth.models import User
from event_hub.backends.razorpay_client import RazorpayClient
from event_hub.exceptions import (
    FlowStoreError,
    FormValidationError,
    GatewayConfigError,
    InvalidTransitionError,
    NotFoundError,
    OrderCreationError,
    PaymentVerificationError,
    PersistenceAfterPaymentError,
    RegistrationError,
    RegistrationPersistenceError,
    UnauthenticatedError,
)
from event_hub.models.event import Event
from event_hub.models.registration_flow import RegistrationFlow, RegistrationState
from event_hub.services.event_service import EventService
from event_hub.services.form_field_service import FormFieldService
from event_hub.services.form_renderer import validate_submission
from event_hub.services.registration_flow_store import RegistrationFlowStore
from event_hub.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

# Errors after which the registrant may try again with the held answers
RECOVERABLE_ERROR_CODES = {
    OrderCreationError.error_code,
    RegistrationPersistenceError.error_code,
}


class PaymentConfirmation(BaseModel):
    """Payload handed to the checkout success callback by the gateway"""

    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: Optional[str] = None


def to_minor_units(price: Decimal) -> int:
    """Ticket price in major units -> integer minor units (price x 100)"""
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), ROUND_HALF_UP))


class RegistrationWorkflow:
    """Drives one registrant through the free or paid registration path"""

    def __init__(
        self,
        event_service: EventService,
        form_field_service: FormFieldService,
        registration_service: RegistrationService,
        flow_store: RegistrationFlowStore,
        payment_gateway: RazorpayClient,
        current_user: Optional[User],
        currency: str = "INR",
        verify_payments: bool = False,
    ):
        self.event_service = event_service
        self.form_field_service = form_field_service
        self.registration_service = registration_service
        self.flow_store = flow_store
        self.payment_gateway = payment_gateway
        self.current_user = current_user
        self.currency = currency
        self.verify_payments = verify_payments

    # Lookups

    def _require_user(self) -> User:
        if self.current_user is None:
            raise UnauthenticatedError()
        return self.current_user

    def _get_event(self, event_id: uuid.UUID) -> Event:
        event = self.event_service.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found.")
        return event

    def get_flow(self, flow_id: str) -> RegistrationFlow:
        """
        Load a flow owned by the current user

        Raises:
            UnauthenticatedError: If there is no session
            NotFoundError: If the flow expired or belongs to someone else
        """
        user = self._require_user()
        flow = self._load(flow_id)
        if flow is None or flow.user_id != user.user_id:
            raise NotFoundError("Registration not found or expired.", flow_id=flow_id)
        return flow

    # Flow store access

    def _load(self, flow_id: str) -> Optional[RegistrationFlow]:
        try:
            return self.flow_store.load(flow_id)
        except redis.RedisError as e:
            raise FlowStoreError(
                "Registration is temporarily unavailable. Please try again.",
                flow_id=flow_id,
            ) from e

    def _save(self, flow: RegistrationFlow) -> None:
        try:
            self.flow_store.save(flow)
        except redis.RedisError as e:
            raise FlowStoreError(
                "Registration is temporarily unavailable. Please try again.",
                flow_id=flow.flow_id,
            ) from e

    # State helpers

    def _require_state(self, flow: RegistrationFlow, action: str, *allowed) -> None:
        if flow.state not in allowed:
            raise InvalidTransitionError(
                f"Cannot {action} while registration is {flow.state.value}.",
                flow_id=flow.flow_id,
            )

    def _can_resubmit(self, flow: RegistrationFlow) -> bool:
        if flow.state in (
            RegistrationState.COLLECTING,
            RegistrationState.PAYMENT_REQUIRED,
        ):
            return True
        return (
            flow.state == RegistrationState.ERROR
            and flow.error_code in RECOVERABLE_ERROR_CODES
        )

    def _fail(self, flow: RegistrationFlow, error: RegistrationError) -> RegistrationError:
        """Record an error state on the flow and hand the error back to raise"""
        error.flow_id = flow.flow_id
        flow.state = RegistrationState.ERROR
        flow.error_code = error.error_code
        flow.error_message = error.message
        try:
            self.flow_store.save(flow)
        except redis.RedisError as e:
            # The caller still gets the error, including any payment id
            logger.error(
                f"Could not record error state for flow {flow.flow_id} "
                f"(payment_id={flow.payment_id}): {e}"
            )
        return error

    # Transitions

    def start(self, event_id: uuid.UUID) -> RegistrationFlow:
        """
        idle -> collecting

        Raises:
            UnauthenticatedError: If there is no session
            NotFoundError: If the event does not exist
        """
        user = self._require_user()
        event = self._get_event(event_id)

        flow = RegistrationFlow(
            event_id=event.id,
            user_id=user.user_id,
            state=RegistrationState.COLLECTING,
        )
        self._save(flow)
        logger.info(
            f"Started registration flow {flow.flow_id} for event {event.id} "
            f"(user {user.user_id})"
        )
        return flow

    async def submit(
        self, flow_id: str, raw_values: Mapping[str, Any]
    ) -> RegistrationFlow:
        """
        Validate answers and move to finalizing (free) or payment_required (paid)

        Resubmission overwrites the held answers.

        Raises:
            FormValidationError: Flow state is left unchanged
            GatewayConfigError, OrderCreationError: Flow moves to error, answers kept
            RegistrationPersistenceError: Free registration could not be written
            InvalidTransitionError: Flow already finished or failed terminally
        """
        flow = self.get_flow(flow_id)
        if not self._can_resubmit(flow):
            raise InvalidTransitionError(
                f"Cannot submit while registration is {flow.state.value}.",
                flow_id=flow.flow_id,
            )

        event = self._get_event(flow.event_id)
        fields = self.form_field_service.get_fields_by_event_id(event.id)

        try:
            form_data = validate_submission(fields, raw_values)
        except FormValidationError as e:
            e.flow_id = flow.flow_id
            raise

        flow.form_data = form_data
        flow.error_code = None
        flow.error_message = None
        return await self._proceed(flow, event)

    async def retry(self, flow_id: str) -> RegistrationFlow:
        """Repeat the failed step with the answers already held"""
        flow = self.get_flow(flow_id)
        if (
            flow.state != RegistrationState.ERROR
            or flow.error_code not in RECOVERABLE_ERROR_CODES
            or flow.form_data is None
        ):
            raise InvalidTransitionError(
                "Nothing to retry for this registration.", flow_id=flow.flow_id
            )

        event = self._get_event(flow.event_id)
        flow.error_code = None
        flow.error_message = None
        return await self._proceed(flow, event)

    async def _proceed(self, flow: RegistrationFlow, event: Event) -> RegistrationFlow:
        if event.is_free:
            flow.order_id = None
            flow.amount = None
            flow.currency = None
            logger.info(f"Free event {event.id} - finalizing flow {flow.flow_id}")
            return self._finalize(flow, confirmation=None)
        return await self._request_order(flow, event)

    async def _request_order(
        self, flow: RegistrationFlow, event: Event
    ) -> RegistrationFlow:
        amount = to_minor_units(event.ticket_price)

        try:
            order = await self.payment_gateway.create_order(
                amount, self.currency, receipt=f"reg_{flow.flow_id[:8]}"
            )
        except (GatewayConfigError, OrderCreationError) as e:
            raise self._fail(flow, e)
        except Exception as e:
            logger.exception(f"Unexpected error creating order for flow {flow.flow_id}")
            raise self._fail(flow, OrderCreationError("Could not initialize payment.")) from e

        flow.order_id = order.id
        flow.amount = order.amount
        flow.currency = order.currency
        flow.payment_id = None
        flow.state = RegistrationState.PAYMENT_REQUIRED
        try:
            self._save(flow)
        except FlowStoreError:
            # Order is left to expire on the gateway; a resubmission creates a new one
            logger.error(f"Order {order.id} created but flow {flow.flow_id} was not saved")
            raise

        logger.info(f"Flow {flow.flow_id} awaiting payment for order {order.id}")
        return flow

    def begin_checkout(self, flow_id: str) -> Dict[str, Any]:
        """
        payment_required -> paying

        Returns:
            Options for the client-side checkout popup
        """
        flow = self.get_flow(flow_id)
        self._require_state(flow, "open checkout", RegistrationState.PAYMENT_REQUIRED)
        event = self._get_event(flow.event_id)

        try:
            options = self.payment_gateway.checkout_options(
                order_id=flow.order_id,
                amount_minor_units=flow.amount,
                currency=flow.currency,
                name=event.title,
                description=f"Registration for {event.title}",
            )
        except GatewayConfigError as e:
            raise self._fail(flow, e)

        flow.state = RegistrationState.PAYING
        self._save(flow)
        return options

    def dismiss_checkout(self, flow_id: str) -> RegistrationFlow:
        """paying -> payment_required; order and answers are kept"""
        flow = self.get_flow(flow_id)
        if flow.state == RegistrationState.PAYMENT_REQUIRED:
            return flow
        self._require_state(flow, "dismiss checkout", RegistrationState.PAYING)

        flow.state = RegistrationState.PAYMENT_REQUIRED
        self._save(flow)
        logger.info(f"Checkout dismissed for flow {flow.flow_id}")
        return flow

    def complete_payment(
        self, flow_id: str, confirmation: PaymentConfirmation
    ) -> RegistrationFlow:
        """
        Gateway success callback: merge payment ids with held answers and finalize

        Raises:
            PaymentVerificationError: Wrong order, or bad signature when
                verification is enabled
            PersistenceAfterPaymentError: Payment taken but write failed, or the
                flow expired or could not be loaded
        """
        user = self._require_user()
        try:
            flow = self._load(flow_id)
        except FlowStoreError as e:
            raise self._unrecorded_payment(flow_id, confirmation) from e
        if flow is None:
            raise self._unrecorded_payment(flow_id, confirmation)
        if flow.user_id != user.user_id:
            raise NotFoundError("Registration not found or expired.", flow_id=flow_id)

        self._require_state(
            flow,
            "complete payment",
            RegistrationState.PAYING,
            RegistrationState.PAYMENT_REQUIRED,
        )

        if confirmation.razorpay_order_id != flow.order_id:
            raise PaymentVerificationError(
                "Payment does not belong to this registration's order.",
                flow_id=flow.flow_id,
            )

        if self.verify_payments:
            if not self.payment_gateway.verify_payment_signature(
                confirmation.razorpay_order_id,
                confirmation.razorpay_payment_id,
                confirmation.razorpay_signature,
            ):
                raise PaymentVerificationError(
                    "Payment signature could not be verified.", flow_id=flow.flow_id
                )
        else:
            logger.warning(
                f"Recording payment {confirmation.razorpay_payment_id} for flow "
                f"{flow.flow_id} without server-side signature verification"
            )

        flow.payment_id = confirmation.razorpay_payment_id
        return self._finalize(flow, confirmation)

    def _unrecorded_payment(
        self, flow_id: str, confirmation: PaymentConfirmation
    ) -> PersistenceAfterPaymentError:
        """A payment arrived for a flow that is gone; nothing can be written"""
        logger.error(
            f"Payment {confirmation.razorpay_payment_id} for order "
            f"{confirmation.razorpay_order_id} arrived for missing flow {flow_id} "
            f"(user {self.current_user.user_id}); registration not recorded"
        )
        return PersistenceAfterPaymentError(
            payment_id=confirmation.razorpay_payment_id,
            order_id=confirmation.razorpay_order_id,
            flow_id=flow_id,
        )

    def _finalize(
        self, flow: RegistrationFlow, confirmation: Optional[PaymentConfirmation]
    ) -> RegistrationFlow:
        paid = confirmation is not None

        try:
            flow.state = RegistrationState.FINALIZING
            self.flow_store.save(flow)

            registration = self.registration_service.create_registration(
                event_id=flow.event_id,
                user_id=flow.user_id,
                form_data=flow.form_data.as_record(),
                payment_order_id=confirmation.razorpay_order_id if paid else None,
                payment_id=confirmation.razorpay_payment_id if paid else None,
                paid=paid,
            )
        except Exception as e:
            logger.error(f"Final registration failed for flow {flow.flow_id}: {e}")
            if paid:
                raise self._fail(
                    flow,
                    PersistenceAfterPaymentError(
                        payment_id=confirmation.razorpay_payment_id,
                        order_id=confirmation.razorpay_order_id,
                    ),
                ) from e
            raise self._fail(
                flow,
                RegistrationPersistenceError(
                    "Registration could not be saved. Please try again."
                ),
            ) from e

        flow.registration_id = registration.id
        flow.state = RegistrationState.SUCCESS
        try:
            self.flow_store.save(flow)
        except redis.RedisError as e:
            # The row is committed; the registrant still gets the success
            logger.error(
                f"Registration {registration.id} saved but flow {flow.flow_id} "
                f"could not be marked successful: {e}"
            )
        logger.info(
            f"Flow {flow.flow_id} finished with registration {registration.id}"
        )
        return flow

"""Tests for the free and paid registration paths of the workflow"""

import hashlib
import hmac
import uuid
from decimal import Decimal

import pytest
import redis

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
    RegistrationPersistenceError,
    UnauthenticatedError,
)
from event_hub.models.registration import PaymentStatus
from event_hub.models.registration_flow import RegistrationState
from event_hub.services.registration_service import RegistrationService
from event_hub.services.registration_workflow import (
    PaymentConfirmation,
    to_minor_units,
)

FORM_FIELDS = [
    {"field_name": "full_name", "label": "Full name", "is_required": True},
    {"field_name": "guests", "label": "Guests", "field_type": "number"},
]

ANSWERS = {"full_name": "Asha Rao", "guests": "2"}


class FailingRegistrationService(RegistrationService):
    """Fails the first `failures` writes, then behaves normally"""

    def __init__(self, db, failures=1):
        super().__init__(db)
        self.failures = failures
        self.calls = 0

    def create_registration(self, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("database unavailable")
        return super().create_registration(**kwargs)


def _signature(order_id, payment_id, secret="rzp_test_secret"):
    return hmac.new(
        secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()


async def _awaiting_payment(workflow, event):
    flow = workflow.start(event.id)
    return await workflow.submit(flow.flow_id, ANSWERS)


@pytest.mark.parametrize(
    "price, expected",
    [("499.50", 49950), ("1", 100), ("0.01", 1), ("10.005", 1001)],
)
def test_to_minor_units(price, expected):
    assert to_minor_units(Decimal(price)) == expected


class TestStart:
    def test_start_requires_session(self, create_event, make_workflow):
        event = create_event()

        with pytest.raises(UnauthenticatedError):
            make_workflow(None).start(event.id)

    def test_start_unknown_event(self, make_workflow, mock_current_user):
        with pytest.raises(NotFoundError):
            make_workflow(mock_current_user()).start(uuid.uuid4())

    def test_start_moves_to_collecting(
        self, create_event, make_workflow, mock_current_user, flow_store
    ):
        user = mock_current_user()
        event = create_event(fields=FORM_FIELDS)

        flow = make_workflow(user).start(event.id)

        assert flow.state == RegistrationState.COLLECTING
        stored = flow_store.load(flow.flow_id)
        assert stored.user_id == user.user_id
        assert stored.event_id == event.id


class TestFreeRegistration:
    @pytest.mark.asyncio
    async def test_free_event_registers_without_payment(
        self,
        create_event,
        make_workflow,
        mock_current_user,
        razorpay_stub,
        registration_service,
    ):
        user = mock_current_user()
        event = create_event(fields=FORM_FIELDS)
        workflow = make_workflow(user)

        flow = workflow.start(event.id)
        flow = await workflow.submit(flow.flow_id, ANSWERS)

        assert flow.state == RegistrationState.SUCCESS
        assert flow.order_id is None
        assert razorpay_stub.order_requests == []

        registration = registration_service.get_registration_by_id(flow.registration_id)
        assert registration.payment_status == PaymentStatus.FREE_EVENT
        assert registration.payment_id is None
        assert registration.user_id == user.user_id
        assert registration.form_data == {"full_name": "Asha Rao", "guests": 2}

    @pytest.mark.asyncio
    async def test_zero_price_is_free(
        self, create_event, make_workflow, mock_current_user, razorpay_stub
    ):
        event = create_event(ticket_price="0", fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())

        flow = workflow.start(event.id)
        flow = await workflow.submit(flow.flow_id, ANSWERS)

        assert flow.state == RegistrationState.SUCCESS
        assert razorpay_stub.order_requests == []

    @pytest.mark.asyncio
    async def test_validation_failure_keeps_collecting(
        self,
        create_event,
        make_workflow,
        mock_current_user,
        flow_store,
        registration_service,
    ):
        event = create_event(fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)

        with pytest.raises(FormValidationError) as exc_info:
            await workflow.submit(flow.flow_id, {"guests": "2"})

        assert exc_info.value.missing_fields == ["full_name"]
        assert exc_info.value.flow_id == flow.flow_id
        assert flow_store.load(flow.flow_id).state == RegistrationState.COLLECTING
        assert registration_service.get_registration_count_for_event(event.id) == 0

        # Fixing the answers on the same flow succeeds
        flow = await workflow.submit(flow.flow_id, ANSWERS)
        assert flow.state == RegistrationState.SUCCESS

    @pytest.mark.asyncio
    async def test_repeat_registrations_insert_new_rows(
        self, create_event, make_workflow, mock_current_user, registration_service
    ):
        event = create_event(fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())

        for _ in range(2):
            flow = workflow.start(event.id)
            await workflow.submit(flow.flow_id, ANSWERS)

        assert registration_service.get_registration_count_for_event(event.id) == 2

    @pytest.mark.asyncio
    async def test_free_write_failure_can_be_retried(
        self, create_event, make_workflow, mock_current_user, _db_session
    ):
        event = create_event(fields=FORM_FIELDS)
        failing = FailingRegistrationService(_db_session, failures=1)
        workflow = make_workflow(mock_current_user(), registration_service=failing)
        flow = workflow.start(event.id)

        with pytest.raises(RegistrationPersistenceError):
            await workflow.submit(flow.flow_id, ANSWERS)

        assert workflow.get_flow(flow.flow_id).state == RegistrationState.ERROR

        flow = await workflow.retry(flow.flow_id)

        assert flow.state == RegistrationState.SUCCESS
        assert failing.calls == 2

    @pytest.mark.asyncio
    async def test_submit_after_success_is_rejected(
        self, create_event, make_workflow, mock_current_user
    ):
        event = create_event(fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)
        await workflow.submit(flow.flow_id, ANSWERS)

        with pytest.raises(InvalidTransitionError):
            await workflow.submit(flow.flow_id, ANSWERS)


class TestPaidRegistration:
    @pytest.mark.asyncio
    async def test_paid_submission_creates_order_for_price_in_minor_units(
        self, create_event, make_workflow, mock_current_user, razorpay_stub
    ):
        event = create_event(ticket_price="499.50", fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())

        flow = await _awaiting_payment(workflow, event)

        assert flow.state == RegistrationState.PAYMENT_REQUIRED
        assert flow.order_id == "order_test1"
        assert flow.amount == 49950
        assert flow.currency == "INR"
        assert razorpay_stub.order_requests[0]["amount"] == 49950
        assert razorpay_stub.order_requests[0]["currency"] == "INR"
        assert flow.form_data.as_record() == {"full_name": "Asha Rao", "guests": 2}

    @pytest.mark.asyncio
    async def test_order_failure_keeps_answers_and_allows_retry(
        self,
        create_event,
        make_workflow,
        mock_current_user,
        razorpay_stub,
        flow_store,
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)

        razorpay_stub.fail_with_status = 400
        with pytest.raises(OrderCreationError):
            await workflow.submit(flow.flow_id, ANSWERS)

        failed = flow_store.load(flow.flow_id)
        assert failed.state == RegistrationState.ERROR
        assert failed.error_code == "order_creation_failed"
        assert failed.form_data.as_record() == {"full_name": "Asha Rao", "guests": 2}

        razorpay_stub.fail_with_status = None
        flow = await workflow.retry(flow.flow_id)

        assert flow.state == RegistrationState.PAYMENT_REQUIRED
        assert flow.order_id == "order_test1"
        assert flow.error_code is None
        assert len(razorpay_stub.order_requests) == 2

    @pytest.mark.asyncio
    async def test_network_failure_is_order_creation_error(
        self, create_event, make_workflow, mock_current_user, razorpay_stub
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        razorpay_stub.raise_network_error = True

        with pytest.raises(OrderCreationError):
            await _awaiting_payment(workflow, event)

    @pytest.mark.asyncio
    async def test_missing_gateway_keys_is_not_retryable(
        self, create_event, make_workflow, mock_current_user, razorpay_stub
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        unconfigured = RazorpayClient({})
        workflow = make_workflow(mock_current_user(), payment_gateway=unconfigured)
        flow = workflow.start(event.id)

        with pytest.raises(GatewayConfigError) as exc_info:
            await workflow.submit(flow.flow_id, ANSWERS)

        assert "Missing Razorpay Keys" in exc_info.value.message
        assert workflow.get_flow(flow.flow_id).error_code == "gateway_config"

        with pytest.raises(InvalidTransitionError):
            await workflow.retry(flow.flow_id)

    @pytest.mark.asyncio
    async def test_dismissed_checkout_keeps_order_and_answers(
        self, create_event, make_workflow, mock_current_user
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS, title="Meetup")
        workflow = make_workflow(mock_current_user())
        flow = await _awaiting_payment(workflow, event)

        options = workflow.begin_checkout(flow.flow_id)

        assert options["key"] == "rzp_test_key"
        assert options["order_id"] == flow.order_id
        assert options["amount"] == 25000
        assert options["name"] == "Meetup"
        assert workflow.get_flow(flow.flow_id).state == RegistrationState.PAYING

        dismissed = workflow.dismiss_checkout(flow.flow_id)

        assert dismissed.state == RegistrationState.PAYMENT_REQUIRED
        assert dismissed.order_id == flow.order_id
        assert dismissed.form_data.as_record() == flow.form_data.as_record()

        # Reopening uses the same order
        assert workflow.begin_checkout(flow.flow_id)["order_id"] == flow.order_id

    def test_checkout_requires_pending_order(
        self, create_event, make_workflow, mock_current_user
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)

        with pytest.raises(InvalidTransitionError):
            workflow.begin_checkout(flow.flow_id)

    @pytest.mark.asyncio
    async def test_payment_success_persists_answers_with_payment_ids(
        self,
        create_event,
        make_workflow,
        mock_current_user,
        registration_service,
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = await _awaiting_payment(workflow, event)
        workflow.begin_checkout(flow.flow_id)

        flow = workflow.complete_payment(
            flow.flow_id,
            PaymentConfirmation(
                razorpay_order_id=flow.order_id, razorpay_payment_id="pay_123"
            ),
        )

        assert flow.state == RegistrationState.SUCCESS
        assert flow.payment_id == "pay_123"

        registration = registration_service.get_registration_by_id(flow.registration_id)
        assert registration.payment_status == PaymentStatus.PAID
        assert registration.payment_id == "pay_123"
        assert registration.payment_order_id == "order_test1"
        assert registration.form_data == {"full_name": "Asha Rao", "guests": 2}

    @pytest.mark.asyncio
    async def test_payment_for_another_order_is_rejected(
        self, create_event, make_workflow, mock_current_user, registration_service
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = await _awaiting_payment(workflow, event)

        with pytest.raises(PaymentVerificationError):
            workflow.complete_payment(
                flow.flow_id,
                PaymentConfirmation(
                    razorpay_order_id="order_other", razorpay_payment_id="pay_123"
                ),
            )

        assert registration_service.get_registration_count_for_event(event.id) == 0
        assert workflow.get_flow(flow.flow_id).state == RegistrationState.PAYMENT_REQUIRED

    @pytest.mark.asyncio
    async def test_signature_checked_when_verification_enabled(
        self, create_event, make_workflow, mock_current_user
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user(), verify_payments=True)
        flow = await _awaiting_payment(workflow, event)

        with pytest.raises(PaymentVerificationError):
            workflow.complete_payment(
                flow.flow_id,
                PaymentConfirmation(
                    razorpay_order_id=flow.order_id,
                    razorpay_payment_id="pay_123",
                    razorpay_signature="forged",
                ),
            )

        flow = workflow.complete_payment(
            flow.flow_id,
            PaymentConfirmation(
                razorpay_order_id=flow.order_id,
                razorpay_payment_id="pay_123",
                razorpay_signature=_signature(flow.order_id, "pay_123"),
            ),
        )
        assert flow.state == RegistrationState.SUCCESS

    @pytest.mark.asyncio
    async def test_write_failure_after_payment_is_terminal(
        self, create_event, make_workflow, mock_current_user, _db_session
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        failing = FailingRegistrationService(_db_session, failures=1)
        workflow = make_workflow(mock_current_user(), registration_service=failing)
        flow = await _awaiting_payment(workflow, event)
        workflow.begin_checkout(flow.flow_id)

        with pytest.raises(PersistenceAfterPaymentError) as exc_info:
            workflow.complete_payment(
                flow.flow_id,
                PaymentConfirmation(
                    razorpay_order_id=flow.order_id, razorpay_payment_id="pay_lost"
                ),
            )

        error = exc_info.value
        assert "pay_lost" in error.message
        assert error.to_detail()["payment_id"] == "pay_lost"
        assert failing.calls == 1

        stored = workflow.get_flow(flow.flow_id)
        assert stored.state == RegistrationState.ERROR
        assert stored.payment_id == "pay_lost"

        with pytest.raises(InvalidTransitionError):
            await workflow.retry(flow.flow_id)
        with pytest.raises(InvalidTransitionError):
            await workflow.submit(flow.flow_id, ANSWERS)
        assert failing.calls == 1


class TestFlowOwnership:
    @pytest.mark.asyncio
    async def test_other_users_flow_is_not_found(
        self, create_event, make_workflow, mock_current_user
    ):
        event = create_event(fields=FORM_FIELDS)
        flow = make_workflow(mock_current_user()).start(event.id)

        intruder = make_workflow(mock_current_user())

        with pytest.raises(NotFoundError):
            await intruder.submit(flow.flow_id, ANSWERS)

    def test_expired_flow_is_not_found(self, make_workflow, mock_current_user):
        with pytest.raises(NotFoundError):
            make_workflow(mock_current_user()).get_flow("expired-flow")


def _redis_down(*args, **kwargs):
    raise redis.ConnectionError("down")


class TestFlowStoreFailures:
    @pytest.mark.asyncio
    async def test_payment_for_expired_flow_surfaces_payment_id(
        self, create_event, make_workflow, mock_current_user, redis_client,
        registration_service,
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = await _awaiting_payment(workflow, event)
        workflow.begin_checkout(flow.flow_id)
        redis_client.delete(f"registration_flow:{flow.flow_id}")

        with pytest.raises(PersistenceAfterPaymentError) as exc_info:
            workflow.complete_payment(
                flow.flow_id,
                PaymentConfirmation(
                    razorpay_order_id=flow.order_id, razorpay_payment_id="pay_late"
                ),
            )

        detail = exc_info.value.to_detail()
        assert "pay_late" in exc_info.value.message
        assert detail["payment_id"] == "pay_late"
        assert detail["order_id"] == flow.order_id
        assert registration_service.get_registration_count_for_event(event.id) == 0

    @pytest.mark.asyncio
    async def test_payment_when_flow_store_is_down_surfaces_payment_id(
        self, create_event, make_workflow, mock_current_user, redis_client,
        monkeypatch,
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = await _awaiting_payment(workflow, event)
        monkeypatch.setattr(redis_client, "get", _redis_down)

        with pytest.raises(PersistenceAfterPaymentError) as exc_info:
            workflow.complete_payment(
                flow.flow_id,
                PaymentConfirmation(
                    razorpay_order_id=flow.order_id, razorpay_payment_id="pay_123"
                ),
            )

        assert exc_info.value.payment_id == "pay_123"

    @pytest.mark.asyncio
    async def test_order_created_but_flow_not_saved(
        self, create_event, make_workflow, mock_current_user, razorpay_stub,
        redis_client, monkeypatch,
    ):
        event = create_event(ticket_price=250, fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)
        monkeypatch.setattr(redis_client, "setex", _redis_down)

        with pytest.raises(FlowStoreError) as exc_info:
            await workflow.submit(flow.flow_id, ANSWERS)

        assert exc_info.value.status_code == 503
        assert exc_info.value.to_detail()["error"] == "flow_store_unavailable"
        assert len(razorpay_stub.order_requests) == 1

        # Once Redis is back the held snapshot still accepts a resubmission
        monkeypatch.undo()
        assert workflow.get_flow(flow.flow_id).state == RegistrationState.COLLECTING
        flow = await workflow.submit(flow.flow_id, ANSWERS)
        assert flow.state == RegistrationState.PAYMENT_REQUIRED

    def test_start_when_flow_store_is_down(
        self, create_event, make_workflow, mock_current_user, redis_client,
        monkeypatch,
    ):
        event = create_event()
        monkeypatch.setattr(redis_client, "setex", _redis_down)

        with pytest.raises(FlowStoreError):
            make_workflow(mock_current_user()).start(event.id)

    def test_lookup_when_flow_store_is_down(
        self, make_workflow, mock_current_user, redis_client, monkeypatch
    ):
        monkeypatch.setattr(redis_client, "get", _redis_down)

        with pytest.raises(FlowStoreError):
            make_workflow(mock_current_user()).get_flow("any-flow")

    @pytest.mark.asyncio
    async def test_success_not_saved_after_commit_still_succeeds(
        self, create_event, make_workflow, mock_current_user, flow_store,
        registration_service, monkeypatch,
    ):
        event = create_event(fields=FORM_FIELDS)
        workflow = make_workflow(mock_current_user())
        flow = workflow.start(event.id)

        original_save = flow_store.save

        def save_unless_success(flow):
            if flow.state == RegistrationState.SUCCESS:
                raise redis.ConnectionError("down")
            return original_save(flow)

        monkeypatch.setattr(flow_store, "save", save_unless_success)

        flow = await workflow.submit(flow.flow_id, ANSWERS)

        assert flow.state == RegistrationState.SUCCESS
        assert flow.registration_id is not None
        assert registration_service.get_registration_by_id(flow.registration_id)
        assert registration_service.get_registration_count_for_event(event.id) == 1

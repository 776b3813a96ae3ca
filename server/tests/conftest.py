"""Shared test configuration and fixtures for Event Hub tests"""

import json
import logging
import os
import uuid
from decimal import Decimal

from tests.config import test_config

# Must be set before event_hub.config is imported
os.environ["DATABASE_URL"] = test_config["database_url"]
os.environ["REDIS_URL"] = test_config["redis_url"]
os.environ["SUPABASE_JWT_SECRET"] = test_config["supabase_jwt_secret"]
os.environ["RAZORPAY_KEY_ID"] = test_config["razorpay_key_id"]
os.environ["RAZORPAY_KEY_SECRET"] = test_config["razorpay_key_secret"]
os.environ["VERIFY_PAYMENT_SIGNATURE"] = "false"

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from event_hub.auth.dependencies import get_current_user_optional
from event_hub.auth.models import User
from event_hub.backends.razorpay_client import RazorpayClient
from event_hub.main import app
from event_hub.models.database import engine, get_db, get_redis
from event_hub.models.event import Event, EventStatus
from event_hub.services.event_service import EventService
from event_hub.services.form_field_service import FormFieldService
from event_hub.services.payment_service import get_payment_gateway
from event_hub.services.registration_flow_store import RegistrationFlowStore
from event_hub.services.registration_service import RegistrationService
from event_hub.services.registration_workflow import RegistrationWorkflow

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables for every test on the shared in-memory database"""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def _db_session():
    """Private DB session for fixtures only.

    Prefer the service fixtures (`event_service`, `form_field_service`,
    `registration_service`) in tests.
    """
    session = Session(engine)
    yield session
    session.close()


@pytest.fixture
def event_service(_db_session):
    return EventService(_db_session)


@pytest.fixture
def form_field_service(_db_session):
    return FormFieldService(_db_session)


@pytest.fixture
def registration_service(_db_session):
    return RegistrationService(_db_session)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def flow_store(redis_client):
    return RegistrationFlowStore(redis_client=redis_client, ttl_seconds=1800)


class RazorpayStub:
    """Records order requests and answers like the Razorpay orders API"""

    def __init__(self):
        self.order_requests = []
        self.fail_with_status = None
        self.raise_network_error = False
        self.reply_with_text = None
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.raise_network_error:
            raise httpx.ConnectError("connection refused", request=request)

        body = json.loads(request.content)
        self.order_requests.append(body)

        if self.fail_with_status:
            return httpx.Response(
                self.fail_with_status,
                json={"error": {"code": "BAD_REQUEST_ERROR", "description": "nope"}},
            )

        if self.reply_with_text is not None:
            return httpx.Response(200, text=self.reply_with_text)

        self._counter += 1
        return httpx.Response(
            200,
            json={
                "id": f"order_test{self._counter}",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )


@pytest.fixture
def razorpay_stub():
    return RazorpayStub()


@pytest.fixture
def payment_gateway(razorpay_stub):
    """Real RazorpayClient talking to the in-process stub"""
    return RazorpayClient(
        test_config, transport=httpx.MockTransport(razorpay_stub.handler)
    )


@pytest.fixture
def mock_current_user():
    """Factory for authenticated users"""

    def _create_mock_user():
        return User(
            user_id=str(uuid.uuid4()),
            email="registrant@example.com",
            claims={"aud": "authenticated", "role": "authenticated"},
        )

    return _create_mock_user


@pytest.fixture
def create_event(event_service, form_field_service, mock_current_user):
    """Create an event (optionally priced) with a form schema"""

    def _create(ticket_price=None, fields=None, organizer=None, title="Test Event"):
        organizer = organizer or mock_current_user()
        event = event_service.create_event(
            Event(
                user_id=organizer.user_id,
                title=title,
                description="An event for testing registrations",
                ticket_price=Decimal(str(ticket_price)) if ticket_price else None,
                status=EventStatus.PUBLISHED,
            )
        )
        if fields:
            form_field_service.replace_form_fields(event.id, fields)
        return event

    return _create


@pytest.fixture
def make_workflow(
    event_service,
    form_field_service,
    registration_service,
    flow_store,
    payment_gateway,
):
    """Build a RegistrationWorkflow, overriding collaborators per test"""

    def _make(current_user, **overrides):
        kwargs = dict(
            event_service=event_service,
            form_field_service=form_field_service,
            registration_service=registration_service,
            flow_store=flow_store,
            payment_gateway=payment_gateway,
            current_user=current_user,
            currency="INR",
            verify_payments=False,
        )
        kwargs.update(overrides)
        return RegistrationWorkflow(**kwargs)

    return _make


@pytest.fixture
def authenticated_client(mock_current_user, _db_session, redis_client, payment_gateway):
    """Test client with auth, database, Redis and gateway overridden"""

    original_overrides = app.dependency_overrides.copy()

    test_user = mock_current_user()

    async def mock_get_current_user_optional():
        return test_user

    def get_test_db():
        return _db_session

    app.dependency_overrides.clear()
    app.dependency_overrides[get_current_user_optional] = mock_get_current_user_optional
    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    client = TestClient(app)

    yield client, test_user

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)


@pytest.fixture
def anonymous_client(_db_session, redis_client, payment_gateway):
    """Test client with no auth override: tokens go through JWT validation"""

    original_overrides = app.dependency_overrides.copy()

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = lambda: _db_session
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

"""Error taxonomy for the registration flow.

Every error carries an HTTP status and a stable ``error_code`` so routers can
turn it into a JSON response without knowing which step failed.
"""

from typing import Any, Dict, List, Optional


class RegistrationError(Exception):
    """Base class for errors surfaced to the registrant"""

    status_code = 500
    error_code = "registration_error"

    def __init__(self, message: str, flow_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.flow_id = flow_id

    def to_detail(self) -> Dict[str, Any]:
        detail = {"error": self.error_code, "message": self.message}
        if self.flow_id:
            detail["flow_id"] = self.flow_id
        return detail


class NotFoundError(RegistrationError):
    status_code = 404
    error_code = "not_found"


class UnauthenticatedError(RegistrationError):
    status_code = 401
    error_code = "unauthenticated"

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class FormValidationError(RegistrationError):
    """Submitted values do not satisfy the event's form schema"""

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        missing_fields: List[str],
        field_errors: Dict[str, str],
        flow_id: Optional[str] = None,
    ):
        self.missing_fields = missing_fields
        self.field_errors = field_errors
        if missing_fields:
            message = f"Missing required fields: {', '.join(missing_fields)}"
        else:
            message = "; ".join(field_errors.values())
        super().__init__(message, flow_id=flow_id)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["missing_fields"] = self.missing_fields
        detail["field_errors"] = self.field_errors
        return detail


class GatewayConfigError(RegistrationError):
    """Payment credentials are not configured. Fatal, shown verbatim."""

    status_code = 500
    error_code = "gateway_config"


class OrderCreationError(RegistrationError):
    """The gateway could not create an order. The user may retry."""

    status_code = 502
    error_code = "order_creation_failed"


class PaymentVerificationError(RegistrationError):
    status_code = 400
    error_code = "payment_verification_failed"


class InvalidTransitionError(RegistrationError):
    status_code = 409
    error_code = "invalid_transition"


class RegistrationPersistenceError(RegistrationError):
    """Writing the registration failed before any money was taken"""

    status_code = 500
    error_code = "persistence_failed"


class PersistenceAfterPaymentError(RegistrationError):
    """Payment completed but the registration row was not written.

    Needs manual reconciliation, so the payment id always travels with it.
    """

    status_code = 500
    error_code = "persistence_after_payment"

    def __init__(
        self,
        payment_id: str,
        order_id: Optional[str] = None,
        flow_id: Optional[str] = None,
    ):
        self.payment_id = payment_id
        self.order_id = order_id
        message = (
            "Payment succeeded, but final registration failed. "
            f"Please contact support with your Payment ID: {payment_id}"
        )
        super().__init__(message, flow_id=flow_id)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["payment_id"] = self.payment_id
        detail["order_id"] = self.order_id
        return detail


class FlowStoreError(RegistrationError):
    """The in-progress registration could not be read or written"""

    status_code = 503
    error_code = "flow_store_unavailable"

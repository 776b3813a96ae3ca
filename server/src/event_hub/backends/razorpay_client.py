"""Razorpay REST client: order creation, checkout options, signature checks"""

import hashlib
import hmac
import logging
import uuid
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from event_hub.exceptions import GatewayConfigError, OrderCreationError

logger = logging.getLogger(__name__)

RAZORPAY_API_BASE = "https://api.razorpay.com/v1"
MISSING_KEYS_MESSAGE = "Server Configuration Issue: Missing Razorpay Keys"


class PaymentOrder(BaseModel):
    """Gateway-side handle for an amount to be collected"""

    id: str
    amount: int  # minor units (paise for INR)
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


class RazorpayClient:
    def __init__(
        self,
        config: dict,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.key_id = config.get("razorpay_key_id")
        self.key_secret = config.get("razorpay_key_secret")
        self.transport = transport
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _require_keys(self) -> None:
        if not self.is_configured:
            logger.error("RAZORPAY CONFIGURATION ERROR: Keys are undefined.")
            raise GatewayConfigError(MISSING_KEYS_MESSAGE)

    async def create_order(
        self,
        amount_minor_units: int,
        currency: str = "INR",
        receipt: Optional[str] = None,
    ) -> PaymentOrder:
        """
        Create an order on Razorpay

        Args:
            amount_minor_units: Amount in the smallest currency unit
            currency: ISO currency code
            receipt: Merchant receipt reference; generated when omitted

        Returns:
            PaymentOrder for the created order

        Raises:
            GatewayConfigError: If API keys are missing
            OrderCreationError: If the request fails or Razorpay rejects it
        """
        self._require_keys()

        if amount_minor_units <= 0:
            raise OrderCreationError(
                f"Order amount must be positive, got {amount_minor_units}"
            )

        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt or f"receipt_{uuid.uuid4().hex[:8]}",
        }

        try:
            async with httpx.AsyncClient(
                base_url=RAZORPAY_API_BASE,
                auth=(self.key_id, self.key_secret),
                transport=self.transport,
                timeout=self.timeout,
            ) as client:
                response = await client.post("/orders", json=payload)
                response.raise_for_status()
                data = response.json()

            order = PaymentOrder(
                id=data["id"],
                amount=data.get("amount", amount_minor_units),
                currency=data.get("currency", currency),
                receipt=data.get("receipt"),
                status=data.get("status"),
            )

        except httpx.HTTPStatusError as e:
            logger.error(
                f"Razorpay rejected order: {e.response.status_code} - {e.response.text}"
            )
            raise OrderCreationError("Failed to create order") from e
        except httpx.RequestError as e:
            logger.error(f"Error creating Razorpay order: {e}")
            raise OrderCreationError("Failed to create order") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            # Non-JSON body, or JSON without an order id
            logger.error(f"Unreadable Razorpay order response: {e}")
            raise OrderCreationError("Failed to create order") from e

        logger.info(f"Created Razorpay order {order.id} for {order.amount} {order.currency}")
        return order

    def checkout_options(
        self,
        order_id: str,
        amount_minor_units: int,
        currency: str,
        name: str,
        description: str,
    ) -> Dict[str, Any]:
        """Options the client hands to the Razorpay checkout popup"""
        if not self.key_id:
            raise GatewayConfigError("Payment data is incomplete.")

        return {
            "key": self.key_id,
            "amount": amount_minor_units,
            "currency": currency,
            "name": name,
            "description": description,
            "order_id": order_id,
        }

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: Optional[str]
    ) -> bool:
        """Check the checkout signature: HMAC-SHA256 of 'order_id|payment_id'"""
        self._require_keys()
        if not signature:
            return False

        expected = hmac.new(
            self.key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

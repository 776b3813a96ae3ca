"""Order creation endpoint used by the checkout page"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from event_hub.backends.razorpay_client import RazorpayClient
from event_hub.config import config
from event_hub.exceptions import GatewayConfigError, OrderCreationError
from event_hub.services.payment_service import get_payment_gateway

router = APIRouter(prefix="/api", tags=["payments"])


class CreateOrderRequest(BaseModel):
    amount: int = Field(gt=0, description="Amount in minor units (e.g. paise)")
    currency: Optional[str] = None


@router.post("/create-order")
async def create_order(
    request: CreateOrderRequest,
    payment_gateway: RazorpayClient = Depends(get_payment_gateway),
):
    """Create a gateway order; failures come back as {"error": ...} JSON"""
    try:
        order = await payment_gateway.create_order(
            request.amount, request.currency or config["payment_currency"]
        )
    except GatewayConfigError as e:
        return JSONResponse({"error": e.message}, status_code=500)
    except OrderCreationError:
        return JSONResponse({"error": "Failed to create order"}, status_code=500)

    return {"orderId": order.id, "amount": order.amount, "currency": order.currency}

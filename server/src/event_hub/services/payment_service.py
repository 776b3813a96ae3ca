"""Centralized payment gateway client for the application"""

import logging

from event_hub.backends.razorpay_client import RazorpayClient
from event_hub.config import config

logger = logging.getLogger(__name__)

# Global gateway client instance
_payment_gateway = None


def get_payment_gateway() -> RazorpayClient:
    """Get or create the global Razorpay client instance"""
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = RazorpayClient(config)
        if not _payment_gateway.is_configured:
            logger.warning("Razorpay keys are not configured; paid events will fail")
        else:
            logger.info("Initialized global Razorpay client")
    return _payment_gateway

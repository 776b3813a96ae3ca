#!/usr/bin/env python3
"""Event Hub - registration API"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from event_hub.config import config
from event_hub.logging_config import get_logger, setup_logging
from event_hub.routers.events import router as events_router
from event_hub.routers.health import health
from event_hub.routers.payments import router as payments_router
from event_hub.routers.registration import router as registration_router

# Configure logging (INFO -> stdout, WARNING/ERROR -> stderr)
setup_logging()
logger = get_logger(__name__)


app = FastAPI(
    title="Event Hub",
    description="Event registration API - custom registration forms per event with optional paid tickets",
    version="1.0.0",
    license_info={
        "name": "MIT",
    },
)

# Trust proxy headers from the hosting platform's TLS terminator
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

if config["allowed_origins"]:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config["allowed_origins"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )

# Include routers
app.include_router(health)
app.include_router(events_router)
app.include_router(registration_router)
app.include_router(payments_router)


if __name__ == "__main__":
    port = config.get("port")
    logger.info(f"Starting Event Hub on 0.0.0.0:{port}")
    logger.info("Health check available at /health")

    try:
        uvicorn.run(
            app, host="0.0.0.0", port=port, log_level=config["log_level"].lower()
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise

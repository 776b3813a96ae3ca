"""Configuration loader for Event Hub with environment-specific support"""

import os
from pathlib import Path

from dotenv import load_dotenv

server_dir = Path(__file__).parent.parent.parent
env_path = server_dir / ".env"

# Load .env file if it exists. For local development only.
if env_path.exists():
    load_dotenv(env_path)

# Configuration dictionary - set once at initialization
config = {
    "database_url": os.getenv("DATABASE_URL"),
    "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    "port": int(os.getenv("PORT", "8080")),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "environment": os.getenv("ENVIRONMENT", "development"),
    # Comma-separated browser origins allowed to call the API
    "allowed_origins": [
        o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()
    ],
    # Managed auth service issues HS256 tokens signed with this secret
    "supabase_jwt_secret": os.getenv("SUPABASE_JWT_SECRET"),
    "supabase_jwt_audience": os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated"),
    "razorpay_key_id": os.getenv("RAZORPAY_KEY_ID"),
    "razorpay_key_secret": os.getenv("RAZORPAY_KEY_SECRET"),
    "payment_currency": os.getenv("PAYMENT_CURRENCY", "INR"),
    "registration_flow_ttl_seconds": int(
        os.getenv("REGISTRATION_FLOW_TTL_SECONDS", "1800")
    ),
    # TTL for flows with an open gateway order or a recorded payment
    "registration_payment_ttl_seconds": int(
        os.getenv("REGISTRATION_PAYMENT_TTL_SECONDS", "86400")
    ),
    "verify_payment_signature": os.getenv("VERIFY_PAYMENT_SIGNATURE", "false").lower()
    == "true",
}

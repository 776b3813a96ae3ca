import logging
from datetime import datetime, timezone
from typing import Optional

import redis
from pydantic import ValidationError

from event_hub.models.registration_flow import RegistrationFlow, RegistrationState

logger = logging.getLogger(__name__)

# States held with the longer payment TTL
PAYMENT_HOLD_STATES = {
    RegistrationState.PAYMENT_REQUIRED,
    RegistrationState.PAYING,
    RegistrationState.FINALIZING,
}


class RegistrationFlowStore:
    """
    Keeps registration flow snapshots in Redis with a sliding TTL.

    The snapshot bridges the form submission request and the later payment
    callback, so the registrant never has to re-enter answers. Each flow has
    exactly one slot; saving overwrites it.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = 1800,
        payment_ttl_seconds: int = 86400,
    ):
        """
        Args:
            redis_client: Redis client instance (from dependency injection)
            ttl_seconds: Time-to-live in seconds (default: 1800 = 30 minutes)
            payment_ttl_seconds: Time-to-live once an order exists or a payment
                was recorded (default: 86400 = 24 hours)
        """
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.payment_ttl_seconds = payment_ttl_seconds

    def _ttl_for(self, flow: RegistrationFlow) -> int:
        if flow.state in PAYMENT_HOLD_STATES or flow.payment_id:
            return max(self.ttl_seconds, self.payment_ttl_seconds)
        return self.ttl_seconds

    def _flow_key(self, flow_id: str) -> str:
        return f"registration_flow:{flow_id}"

    def load(self, flow_id: str) -> Optional[RegistrationFlow]:
        """
        Load a flow snapshot

        Returns:
            The snapshot, or None when it is missing or corrupted

        Raises:
            redis.RedisError: If Redis operation fails
        """
        key = self._flow_key(flow_id)
        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis error loading flow {flow_id}: {e}")
            raise

        if not raw:
            return None

        try:
            return RegistrationFlow.model_validate_json(raw)
        except ValidationError:
            logger.error(f"Corrupted registration flow {flow_id}, ignoring")
            return None

    def save(self, flow: RegistrationFlow) -> RegistrationFlow:
        """
        Write the snapshot and refresh its TTL

        Raises:
            redis.RedisError: If Redis operation fails
        """
        flow.updated_at = datetime.now(timezone.utc)
        key = self._flow_key(flow.flow_id)
        try:
            self.redis_client.setex(key, self._ttl_for(flow), flow.model_dump_json())
        except redis.RedisError as e:
            logger.error(f"Redis error saving flow {flow.flow_id}: {e}")
            raise
        return flow

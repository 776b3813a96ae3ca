"""JWT utilities for session tokens issued by the managed auth service"""

from typing import Dict, Optional

from authlib.jose import JoseError, JsonWebToken
from authlib.jose.errors import InvalidTokenError

from event_hub.auth.models import User
from event_hub.config import config
from event_hub.logging_config import get_logger

logger = get_logger(__name__)


class JWTUtils:
    """Decode HS256 access tokens signed with the project's shared JWT secret"""

    def __init__(self, secret: Optional[str] = None, audience: Optional[str] = None):
        self.jwt = JsonWebToken(["HS256"])
        self.secret = secret if secret is not None else config.get("supabase_jwt_secret")
        self.audience = audience or config.get("supabase_jwt_audience")

    def _decode(self, token: str) -> Dict:
        """
        Verify signature, expiry and audience of a token

        Raises:
            InvalidTokenError: If the token cannot be trusted
        """
        if not self.secret:
            # Without a secret no token can be verified
            raise InvalidTokenError("SUPABASE_JWT_SECRET is not configured")

        try:
            claims = self.jwt.decode(
                token,
                self.secret,
                claims_options={"aud": {"essential": True, "value": self.audience}},
            )
            claims.validate()
            return claims
        except JoseError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise InvalidTokenError(f"Token validation failed: {str(e)}")

    def extract_user(self, token: str) -> User:
        """
        Build a User from a bearer token

        Raises:
            InvalidTokenError: If token is invalid or missing the subject
        """
        claims = self._decode(token)
        user_id = claims.get("sub")

        if not user_id:
            raise InvalidTokenError("Token missing 'sub' claim")

        return User(
            user_id=user_id,
            email=claims.get("email"),
            claims={
                "aud": claims.get("aud"),
                "exp": claims.get("exp"),
                "iat": claims.get("iat"),
                "role": claims.get("role"),
            },
        )


# Global JWT utilities instance
jwt_utils = JWTUtils()

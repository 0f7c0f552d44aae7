"""
Bearer token handling.

Tokens are minted by the external identity provider; this service only
verifies them. ``create_access_token`` exists for local tooling and tests.
"""

from datetime import timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from telecare.core.clock import utc_now
from telecare.core.config import settings


class SecurityManager:
    """Verifies identity-provider tokens."""

    def __init__(self):
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.jwt_access_token_expire_minutes

    def _signing_key(self) -> str:
        if self.algorithm == "RS256":
            if not settings.jwt_private_key:
                raise ValueError("JWT private key not configured")
            return settings.jwt_private_key
        return self.secret_key

    def _verification_key(self) -> str:
        if self.algorithm == "RS256":
            if not settings.jwt_public_key:
                raise ValueError("JWT public key not configured")
            return settings.jwt_public_key
        return self.secret_key

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token."""
        to_encode = data.copy()
        if expires_delta:
            expire = utc_now() + expires_delta
        else:
            expire = utc_now() + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, self._signing_key(), algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(token, self._verification_key(), algorithms=[self.algorithm])

            # Verify token type
            if payload.get("type") != token_type:
                return None

            return payload
        except JWTError:
            return None


# Global security manager instance
security = SecurityManager()

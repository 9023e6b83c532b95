from jose import jwt
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Tuple
from natours.core.config import settings


class JWTManager:
    """Manages JWT access tokens and password-reset tokens."""

    def __init__(self, secret_key: str, algorithm: str, access_token_ttl: timedelta):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = access_token_ttl
        self.reset_token_ttl = timedelta(minutes=settings.password_reset_expire_minutes)

    def create_access_token(self, user_id: int, issued_at: Optional[datetime] = None) -> str:
        """Create a signed access token for the given user id."""
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "iat": now,
            "exp": now + self.access_token_ttl,
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """Verify signature and expiry.

        Raises jose's ExpiredSignatureError for expired tokens and JWTError
        for any other verification failure.
        """
        return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

    @staticmethod
    def hash_reset_token(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def create_reset_token(self) -> Tuple[str, str, datetime]:
        """Return (plaintext token, stored hash, expiry)."""
        token = secrets.token_hex(32)
        expires_at = datetime.now(timezone.utc) + self.reset_token_ttl
        return token, self.hash_reset_token(token), expires_at


# Global JWT manager instance
jwt_manager = JWTManager(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_ttl=timedelta(minutes=settings.jwt_access_token_expire_minutes),
)

"""
JWT inspection for bridge and Shareify tokens

The client never holds the signing secrets, so claims are read without
signature verification. Results are informational only (status display);
the servers remain the authority and a 401 still drives re-authentication.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import jwt
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TokenInfo(BaseModel):
    """Unverified token claims"""

    sub: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.exp is None:
            return None
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    def is_expired(self, leeway_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """Tokens without an exp claim never count as expired"""
        if self.exp is None:
            return False
        current = (now or datetime.now(timezone.utc)).timestamp()
        return current >= self.exp - leeway_seconds


def inspect_token(token: Optional[str]) -> Optional[TokenInfo]:
    """
    Decode a JWT's claims without verifying its signature.

    Args:
        token: Encoded JWT (may be None or opaque)

    Returns:
        TokenInfo, or None if the token is missing or not a JWT
    """
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
            algorithms=["HS256", "HS384", "HS512", "RS256", "ES256"],
        )
    except jwt.InvalidTokenError as e:
        logger.debug(f"Token is not a decodable JWT: {e}")
        return None

    sub = payload.get("sub")
    return TokenInfo(
        sub=str(sub) if sub is not None else None,
        exp=payload.get("exp") if isinstance(payload.get("exp"), int) else None,
        iat=payload.get("iat") if isinstance(payload.get("iat"), int) else None,
    )

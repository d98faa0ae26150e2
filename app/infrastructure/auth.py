"""Bearer token codec.

Tokens are ``<claims>.<signature>`` where ``claims`` is base64url-encoded
JSON (``sub``, ``role``, ``shopId``, ``exp``) and ``signature`` is the hex
HMAC-SHA256 of the encoded claims. The REST API and the realtime gateway
share one codec.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass

import structlog

from app.domain.entities import UserRole
from app.domain.exceptions import AuthenticationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: str
    role: UserRole = UserRole.STUDENT
    shop_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class TokenCodec:
    """Issues and verifies HMAC-signed bearer tokens."""

    def __init__(self, secret: str, ttl_seconds: int = 7 * 24 * 3600) -> None:
        self.secret = secret
        self.ttl_seconds = ttl_seconds

    def _sign(self, encoded_claims: str) -> str:
        return hmac.new(
            self.secret.encode(),
            encoded_claims.encode(),
            hashlib.sha256,
        ).hexdigest()

    def issue(self, identity: Identity, now: float | None = None) -> str:
        """Issue a token for an identity."""
        now = time.time() if now is None else now
        claims = {
            "sub": identity.user_id,
            "role": identity.role.value,
            "shopId": identity.shop_id,
            "exp": int(now + self.ttl_seconds),
        }
        encoded = _b64encode(json.dumps(claims, separators=(",", ":")).encode())
        return f"{encoded}.{self._sign(encoded)}"

    def decode(self, token: str | None, now: float | None = None) -> Identity:
        """Verify a token and return its identity.

        Raises:
            AuthenticationError: If the token is missing, malformed, forged
                or expired.
        """
        if not token:
            raise AuthenticationError("Missing bearer token")

        encoded, sep, signature = token.partition(".")
        if not sep or not encoded or not signature:
            raise AuthenticationError("Malformed bearer token")

        # Constant-time comparison on bytes; str operands must be ASCII
        if not hmac.compare_digest(self._sign(encoded).encode(), signature.encode()):
            logger.warning("Token signature mismatch")
            raise AuthenticationError("Invalid bearer token")

        try:
            claims = json.loads(_b64decode(encoded))
            user_id = claims["sub"]
            role = UserRole(claims.get("role", UserRole.STUDENT.value))
            expires_at = int(claims["exp"])
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError("Malformed bearer token claims") from e

        now = time.time() if now is None else now
        if expires_at < now:
            raise AuthenticationError("Bearer token expired", details={"exp": expires_at})

        return Identity(user_id=user_id, role=role, shop_id=claims.get("shopId"))

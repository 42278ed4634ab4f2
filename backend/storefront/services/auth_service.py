"""
Auth Service — Verifies bearer tokens issued by the auth platform.
Identity is always taken from the verified token, never from request fields.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt

from storefront.config import get_settings
from storefront.exceptions import Unauthorized

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


class AuthService:
    """Turns an ``Authorization: Bearer <jwt>`` header into an Identity."""

    @staticmethod
    def verify_bearer(authorization: Optional[str]) -> Identity:
        if not authorization or not authorization.startswith("Bearer "):
            raise Unauthorized("Unauthorized")

        token = authorization[len("Bearer "):].strip()
        try:
            claims = jwt.decode(
                token,
                settings.AUTH_JWT_SECRET,
                algorithms=[settings.AUTH_JWT_ALGORITHM],
                audience=settings.AUTH_JWT_AUDIENCE,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Session expired")
        except jwt.PyJWTError as e:
            logger.info("Rejected bearer token: %s", e)
            raise Unauthorized("Unauthorized")

        return Identity(user_id=str(claims["sub"]), email=str(claims.get("email") or ""))

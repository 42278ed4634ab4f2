"""
FastAPI Dependencies — identity, admin guard, gateway client, throttling.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.models.profile import UserRole
from storefront.services.auth_service import AuthService, Identity
from storefront.services.gateway_client import GatewayClient
from storefront.utils.rate_limiter import rate_limit

settings = get_settings()


def get_current_identity(authorization: Optional[str] = Header(None)) -> Identity:
    """Verified caller identity from the bearer token."""
    return AuthService.verify_bearer(authorization)


def require_admin(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> Identity:
    is_admin = db.query(UserRole).filter(
        UserRole.user_id == identity.user_id,
        UserRole.role == "admin",
    ).first()
    if not is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity


def get_gateway_client() -> GatewayClient:
    return GatewayClient(settings)


initiate_throttle = rate_limit(
    requests=settings.INITIATE_RATE_LIMIT,
    window=settings.INITIATE_RATE_WINDOW_SECONDS,
    scope="initiate",
)

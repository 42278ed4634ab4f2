"""
Payment Service — Starts an online credit purchase with the gateway.

Each call records exactly one ledger row before the gateway is contacted,
makes at most one outbound request, and never touches the balance.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.exceptions import (
    GatewayNotConfigured, GatewayRejected, GatewayUnreachable,
    LedgerUnavailable, ProfileLookupFailed,
)
from storefront.models.profile import Profile
from storefront.services.audit_service import AuditService
from storefront.services.auth_service import Identity
from storefront.services.gateway_client import GatewayClient
from storefront.services.ledger_service import LedgerService
from storefront.utils.identifiers import generate_identifier
from storefront.utils.payment_errors import classify_gateway_message
from storefront.utils.validators import parse_amount, split_customer_name

logger = logging.getLogger(__name__)
settings = get_settings()

IDENTIFIER_ATTEMPTS = 3


@dataclass(frozen=True)
class InitiationResult:
    identifier: str
    redirect_url: str


class PaymentService:
    """Validates a top-up request and hands the buyer off to the gateway."""

    @staticmethod
    def initiate(
        db: Session,
        identity: Identity,
        amount,
        origin_url: Optional[str],
        gateway: GatewayClient,
        ip_address: Optional[str] = None,
    ) -> InitiationResult:
        """Create a checkout for ``amount`` credits.

        Raises:
            InvalidAmount: amount missing, non-numeric or outside the allowed range.
            ProfileLookupFailed: the owner's profile could not be read.
            GatewayNotConfigured: gateway keys are not set.
            LedgerUnavailable: the ledger row could not be written.
            GatewayUnreachable: transport error or timeout (row marked failed).
            GatewayRejected: gateway refused the checkout (row marked failed).
        """
        value = parse_amount(amount, settings.MIN_TOPUP_AMOUNT, settings.MAX_TOPUP_AMOUNT)
        credits = value * settings.CREDITS_PER_UNIT

        profile = PaymentService._load_profile(db, identity.user_id)

        if not gateway.configured:
            logger.error("Missing payment gateway credentials")
            raise GatewayNotConfigured("Payment gateway not configured")

        identifier = PaymentService._create_row(db, identity, value, credits)
        AuditService.log(db, identifier, "PAYMENT_INITIATED",
                         payload={"amount": str(value), "credits": str(credits), "user_id": identity.user_id},
                         ip_address=ip_address)

        fields = PaymentService.build_checkout_fields(identifier, value, origin_url, profile, identity.email)
        logger.info("Initiating payment %s: amount=%s mode=%s ipn=%s",
                    identifier, value, settings.GATEWAY_MODE, fields["ipn_url"])

        try:
            response = gateway.initiate(fields)
        except GatewayUnreachable as e:
            PaymentService._fail(db, identifier, {"error": e.message}, ip_address)
            raise

        if response.ok:
            try:
                LedgerService.mark_pending(db, identifier, response.redirect_url)
            except SQLAlchemyError as e:
                # Row stays initiated; a later notification can still complete it.
                logger.error("Could not mark %s pending: %s", identifier, e)
            AuditService.log(db, identifier, "PAYMENT_PENDING",
                             payload={"redirect_url": response.redirect_url}, ip_address=ip_address)
            return InitiationResult(identifier=identifier, redirect_url=response.redirect_url)

        logger.error("Gateway rejected %s: %s", identifier, response.raw)
        PaymentService._fail(db, identifier, response.raw, ip_address)
        message = response.message or "Payment initiation failed"
        raise GatewayRejected(message, code=classify_gateway_message(message))

    @staticmethod
    def build_checkout_fields(
        identifier: str,
        amount,
        origin_url: Optional[str],
        profile: Profile,
        email: str,
    ) -> dict:
        """Gateway form fields, minus the merchant keys the client adds itself."""
        base_url = (origin_url or settings.DEFAULT_SITE_URL).rstrip("/")
        route_base = f"{base_url}{settings.CLIENT_ROUTE_PREFIX}"
        first_name, last_name = split_customer_name(profile.full_name, profile.username, email or profile.email)
        display_amount = _format_amount(amount)

        return {
            "identifier": identifier,
            "currency": settings.GATEWAY_CURRENCY,
            "amount": display_amount,
            "details": f"{settings.SITE_NAME} Credit Top-Up - {display_amount} Credits",
            "ipn_url": settings.ipn_url,
            "success_url": f"{route_base}/payment/success?id={identifier}",
            "cancel_url": f"{route_base}/payment/cancel?id={identifier}",
            "site_name": settings.SITE_NAME,
            "site_logo": settings.SITE_LOGO,
            "checkout_theme": settings.CHECKOUT_THEME,
            "customer[first_name]": first_name,
            "customer[last_name]": last_name,
            "customer[email]": email or profile.email,
            "customer[mobile]": settings.CUSTOMER_MOBILE,
        }

    @staticmethod
    def _load_profile(db: Session, user_id: str) -> Profile:
        try:
            profile = db.query(Profile).filter(Profile.id == user_id).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Profile fetch error for %s: %s", user_id, e)
            raise ProfileLookupFailed("Failed to fetch user profile")
        if profile is None:
            raise ProfileLookupFailed("User profile not found", status_code=404)
        return profile

    @staticmethod
    def _create_row(db: Session, identity: Identity, amount, credits) -> str:
        for attempt in range(1, IDENTIFIER_ATTEMPTS + 1):
            identifier = generate_identifier(
                identity.user_id,
                prefix=settings.IDENTIFIER_PREFIX,
                max_length=settings.IDENTIFIER_MAX_LENGTH,
            )
            try:
                LedgerService.create_transaction(db, identifier, identity.user_id, identity.email, amount, credits)
                return identifier
            except IntegrityError:
                logger.warning("Identifier collision on %s (attempt %d)", identifier, attempt)
            except SQLAlchemyError as e:
                logger.error("Insert error: %s", e)
                raise LedgerUnavailable("Failed to create payment record")
        raise LedgerUnavailable("Failed to create payment record")

    @staticmethod
    def _fail(db: Session, identifier: str, raw: dict, ip_address: Optional[str]) -> None:
        try:
            LedgerService.mark_initiation_failed(db, identifier, raw)
        except SQLAlchemyError as e:
            logger.error("Could not mark %s failed: %s", identifier, e)
            return
        AuditService.log(db, identifier, "PAYMENT_FAILED", payload=raw, ip_address=ip_address)


def _format_amount(amount) -> str:
    """500.00 → '500', 10.50 → '10.5'."""
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text

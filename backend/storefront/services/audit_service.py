"""
Audit Service — Append-only trail of payment lifecycle events.
"""
import logging
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.audit import PaymentEvent
from storefront.utils.hashing import generate_hash

logger = logging.getLogger(__name__)


class AuditService:
    """Creates hashed audit entries for payment transactions."""

    @staticmethod
    def log(
        db: Session,
        identifier: str,
        action: str,
        payload: Optional[Dict] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> Optional[PaymentEvent]:
        """Record an audit event.

        Runs after the ledger change it describes has committed. A failed
        audit write is logged and rolled back; it never undoes or fails
        the payment operation itself.

        Args:
            db: Database session.
            identifier: Payment identifier the event belongs to.
            action: Action name (e.g. PAYMENT_INITIATED, IPN_RECEIVED).
            payload: Data payload to hash.
            ip_address: Caller IP.
            metadata: Additional metadata to store.

        Returns:
            The created PaymentEvent, or None if it could not be stored.
        """
        entry = PaymentEvent(
            identifier=identifier,
            action=action,
            payload_hash=generate_hash(payload or {}),
            ip_address=ip_address,
            event_metadata=metadata or {},
            timestamp=datetime.utcnow(),
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Audit write failed for %s/%s: %s", identifier, action, e)
            return None
        return entry

    @staticmethod
    def get_trail(db: Session, identifier: str) -> list[PaymentEvent]:
        """Get the full audit trail for a payment, ordered chronologically."""
        return (
            db.query(PaymentEvent)
            .filter(PaymentEvent.identifier == identifier)
            .order_by(PaymentEvent.timestamp.asc(), PaymentEvent.id.asc())
            .all()
        )

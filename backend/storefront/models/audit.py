"""
Payment Event Model — Append-only audit trail of the payment lifecycle.
Every event payload is SHA-256 hashed and timestamped.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from storefront.database import Base


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    identifier = Column(String(20), nullable=False, index=True)

    action = Column(String(32), nullable=False)
    # Actions: PAYMENT_INITIATED, PAYMENT_PENDING, PAYMENT_FAILED, IPN_RECEIVED,
    #          PAYMENT_COMPLETED, PAYMENT_CANCELLED, IPN_DUPLICATE, IPN_LOGGED

    payload_hash = Column(String(64))       # SHA-256 hash of the event payload
    ip_address = Column(String(45))

    event_metadata = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)

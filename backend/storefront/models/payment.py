"""
Payment Transaction Model — Ledger of online credit purchases.
One row per gateway checkout attempt, keyed by the gateway-facing identifier.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Numeric, ForeignKey

from storefront.database import Base

STATUS_INITIATED = "initiated"
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED, STATUS_CANCELLED)


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    identifier = Column(String(20), unique=True, nullable=False, index=True)

    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    user_email = Column(String(255))

    amount = Column(Numeric(12, 2), nullable=False)
    credits = Column(Numeric(12, 2), nullable=False)   # captured at initiation

    # Status tracking
    status = Column(String(16), nullable=False, default=STATUS_INITIATED, index=True)
    # Statuses: initiated → pending → completed | failed | cancelled (initiated → failed on gateway error)
    redirect_url = Column(String(1024))

    payment_gateway = Column(String(64))
    gateway_transaction_id = Column(String(128))
    api_response = Column(JSON)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

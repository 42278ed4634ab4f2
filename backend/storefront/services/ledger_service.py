"""
Ledger Service — Payment transaction rows and the owner's credit balance.

Every status change is a single conditional UPDATE guarded on the prior
status, so duplicate or concurrent callers can never move a row backwards
or credit the same payment twice. No read-then-write without that guard.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time as dt_time
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.payment import (
    PaymentTransaction,
    STATUS_INITIATED, STATUS_PENDING, STATUS_COMPLETED,
    STATUS_FAILED, STATUS_CANCELLED, TERMINAL_STATUSES,
)
from storefront.models.profile import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a guarded transition.

    ``performed`` is True only for the call that actually changed the row.
    """
    identifier: str
    performed: bool
    status: Optional[str]

    @property
    def found(self) -> bool:
        return self.status is not None


class LedgerService:
    """Reads and guarded writes over ``payment_transactions`` and ``profiles.balance``."""

    # ─── Initiation side ──────────────────────────────────────────────

    @staticmethod
    def create_transaction(
        db: Session,
        identifier: str,
        user_id: str,
        user_email: str,
        amount: Decimal,
        credits: Decimal,
    ) -> PaymentTransaction:
        """Insert a new ``initiated`` row. IntegrityError propagates so the caller can retry."""
        txn = PaymentTransaction(
            identifier=identifier,
            user_id=user_id,
            user_email=user_email,
            amount=amount,
            credits=credits,
            status=STATUS_INITIATED,
        )
        db.add(txn)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(txn)
        return txn

    @staticmethod
    def mark_pending(db: Session, identifier: str, redirect_url: str) -> LedgerResult:
        """``initiated`` → ``pending`` with the checkout URL."""
        return LedgerService._guarded_update(
            db, identifier,
            allowed_from=(STATUS_INITIATED,),
            values={"status": STATUS_PENDING, "redirect_url": redirect_url},
        )

    @staticmethod
    def mark_initiation_failed(db: Session, identifier: str, raw_response: dict) -> LedgerResult:
        """``initiated`` → ``failed`` when the gateway refuses or cannot be reached."""
        return LedgerService._guarded_update(
            db, identifier,
            allowed_from=(STATUS_INITIATED,),
            values={"status": STATUS_FAILED, "api_response": raw_response},
        )

    # ─── Notification side ────────────────────────────────────────────

    @staticmethod
    def complete_payment(
        db: Session,
        identifier: str,
        gateway_transaction_id: str,
        gateway: str,
        raw_response: dict,
    ) -> LedgerResult:
        """Atomically mark the payment completed and credit the owner.

        The status flip and the balance increment commit together. A row
        already in a terminal state is left untouched and reported with
        ``performed=False``.
        """
        now = datetime.utcnow()
        try:
            updated = (
                db.query(PaymentTransaction)
                .filter(
                    PaymentTransaction.identifier == identifier,
                    PaymentTransaction.status.notin_(TERMINAL_STATUSES),
                )
                .update(
                    {
                        PaymentTransaction.status: STATUS_COMPLETED,
                        PaymentTransaction.gateway_transaction_id: gateway_transaction_id,
                        PaymentTransaction.payment_gateway: gateway,
                        PaymentTransaction.api_response: raw_response,
                        PaymentTransaction.completed_at: now,
                        PaymentTransaction.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                db.rollback()
                return LedgerResult(identifier, False, LedgerService.current_status(db, identifier))

            # owner and credits are immutable after creation
            owner_id, credits = (
                db.query(PaymentTransaction.user_id, PaymentTransaction.credits)
                .filter(PaymentTransaction.identifier == identifier)
                .one()
            )
            credited = (
                db.query(Profile)
                .filter(Profile.id == owner_id)
                .update(
                    {Profile.balance: Profile.balance + credits, Profile.updated_at: now},
                    synchronize_session=False,
                )
            )
            if not credited:
                # No profile to credit: keep the payment open rather than lose the credit.
                db.rollback()
                raise LookupError(f"Profile {owner_id} missing for payment {identifier}")

            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info("Payment %s completed: +%s credits to %s", identifier, credits, owner_id)
        return LedgerResult(identifier, True, STATUS_COMPLETED)

    @staticmethod
    def record_failure(db: Session, identifier: str, status: str, raw_response: dict) -> LedgerResult:
        """Atomically mark a non-terminal payment ``failed`` or ``cancelled``. Never touches balance."""
        if status not in (STATUS_FAILED, STATUS_CANCELLED):
            raise ValueError(f"Not a failure status: {status}")
        now = datetime.utcnow()
        return LedgerService._guarded_update(
            db, identifier,
            excluded_from=TERMINAL_STATUSES,
            values={"status": status, "api_response": raw_response, "updated_at": now},
        )

    @staticmethod
    def log_notification(db: Session, identifier: str, raw_response: dict) -> LedgerResult:
        """Store an indeterminate notification's payload without changing status."""
        return LedgerService._guarded_update(
            db, identifier,
            excluded_from=TERMINAL_STATUSES,
            values={"api_response": raw_response, "updated_at": datetime.utcnow()},
        )

    # ─── Reads ────────────────────────────────────────────────────────

    @staticmethod
    def get_by_identifier(db: Session, identifier: str) -> Optional[PaymentTransaction]:
        return db.query(PaymentTransaction).filter(PaymentTransaction.identifier == identifier).first()

    @staticmethod
    def current_status(db: Session, identifier: str) -> Optional[str]:
        row = (
            db.query(PaymentTransaction.status)
            .filter(PaymentTransaction.identifier == identifier)
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def get_for_owner(db: Session, identifier: str, user_id: str) -> Optional[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.identifier == identifier,
                PaymentTransaction.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def list_for_owner(db: Session, user_id: str, limit: int = 20) -> list[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.user_id == user_id)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_completed(db: Session, limit: int = 100) -> list[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.status == STATUS_COMPLETED)
            .order_by(PaymentTransaction.completed_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def completed_stats(db: Session, now: Optional[datetime] = None) -> dict:
        """Totals over all completed payments and over those completed today."""
        today_start = datetime.combine((now or datetime.utcnow()).date(), dt_time.min)
        base = db.query(
            func.count(PaymentTransaction.id),
            func.coalesce(func.sum(PaymentTransaction.amount), 0),
        ).filter(PaymentTransaction.status == STATUS_COMPLETED)

        total_count, total_amount = base.one()
        today_count, today_amount = base.filter(PaymentTransaction.completed_at >= today_start).one()
        return {
            "total_successful": total_count or 0,
            "total_amount": float(total_amount or 0),
            "today_count": today_count or 0,
            "today_amount": float(today_amount or 0),
        }

    @staticmethod
    def get_balance(db: Session, user_id: str) -> Optional[Decimal]:
        row = db.query(Profile.balance).filter(Profile.id == user_id).first()
        return row[0] if row else None

    # ─── Internals ────────────────────────────────────────────────────

    @staticmethod
    def _guarded_update(
        db: Session,
        identifier: str,
        values: dict,
        allowed_from: tuple = (),
        excluded_from: tuple = (),
    ) -> LedgerResult:
        query = db.query(PaymentTransaction).filter(PaymentTransaction.identifier == identifier)
        if allowed_from:
            query = query.filter(PaymentTransaction.status.in_(allowed_from))
        if excluded_from:
            query = query.filter(PaymentTransaction.status.notin_(excluded_from))
        try:
            updated = query.update(values, synchronize_session=False)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        status = LedgerService.current_status(db, identifier)
        return LedgerResult(identifier, bool(updated), status)

"""
Admin Routes — Online payment listing and per-payment audit trail.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.dependencies import require_admin
from storefront.schemas.schemas import OnlinePaymentsResponse, OnlinePaymentEntry, PaymentEventEntry
from storefront.services.audit_service import AuditService
from storefront.services.auth_service import Identity
from storefront.services.ledger_service import LedgerService

settings = get_settings()
router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/online-payments", response_model=OnlinePaymentsResponse)
def get_online_payments(
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Successful gateway payments, newest completion first, with today's totals."""
    txns = LedgerService.list_completed(db, limit=settings.ADMIN_PAYMENTS_LIMIT)
    stats = LedgerService.completed_stats(db)
    return OnlinePaymentsResponse(
        **stats,
        transactions=[OnlinePaymentEntry.model_validate(t) for t in txns],
    )


@router.get("/payments/{identifier}/events", response_model=list[PaymentEventEntry])
def get_payment_events(
    identifier: str,
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Full audit trail for one payment."""
    events = AuditService.get_trail(db, identifier)
    if not events:
        raise HTTPException(status_code=404, detail="No events found for this payment")
    return events

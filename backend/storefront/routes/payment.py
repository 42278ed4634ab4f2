"""
Payment Routes — Online credit top-up.
Handles: checkout initiation, gateway notifications (IPN), ledger reads.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.dependencies import get_current_identity, get_gateway_client, initiate_throttle
from storefront.schemas.schemas import (
    PaymentInitiateRequest, PaymentInitiateResponse, PaymentErrorResponse,
    TransactionResponse, IpnAckResponse,
)
from storefront.services.auth_service import Identity
from storefront.services.gateway_client import GatewayClient
from storefront.services.ipn_service import IpnService
from storefront.services.ledger_service import LedgerService
from storefront.services.payment_service import PaymentService

settings = get_settings()
router = APIRouter(prefix="/api/payment", tags=["Payment"])


@router.post(
    "/initiate",
    response_model=PaymentInitiateResponse,
    responses={400: {"model": PaymentErrorResponse}, 401: {"model": PaymentErrorResponse},
               429: {"model": PaymentErrorResponse}, 500: {"model": PaymentErrorResponse},
               502: {"model": PaymentErrorResponse}},
)
def initiate_payment(
    payload: PaymentInitiateRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gateway: GatewayClient = Depends(get_gateway_client),
    db: Session = Depends(get_db),
    _throttle: bool = Depends(initiate_throttle),
):
    """Start an online top-up and return the gateway checkout URL."""
    result = PaymentService.initiate(
        db, identity,
        amount=payload.amount,
        origin_url=payload.origin_url,
        gateway=gateway,
        ip_address=request.client.host if request.client else None,
    )
    return PaymentInitiateResponse(redirect_url=result.redirect_url, identifier=result.identifier)


@router.post("/ipn", response_model=IpnAckResponse, responses={400: {}, 404: {}, 500: {}})
async def payment_ipn(request: Request, db: Session = Depends(get_db)):
    """Gateway notification endpoint (unauthenticated, at-least-once delivery)."""
    body = await request.body()
    status_code, content = await run_in_threadpool(
        IpnService.handle,
        db, body,
        content_type=request.headers.get("content-type"),
        ip_address=request.client.host if request.client else None,
    )
    return JSONResponse(status_code=status_code, content=content)


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    limit: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Recent payment history of the caller, newest first."""
    page_size = min(limit or settings.HISTORY_PAGE_SIZE, settings.HISTORY_MAX_PAGE_SIZE)
    return LedgerService.list_for_owner(db, identity.user_id, limit=page_size)


@router.get("/transactions/{identifier}", response_model=TransactionResponse)
def get_transaction(
    identifier: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """A single payment of the caller, used by the return-page poller."""
    txn = LedgerService.get_for_owner(db, identifier, identity.user_id)
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn

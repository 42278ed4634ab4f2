"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from typing import Any, Optional, Dict, List
from pydantic import AliasChoices, BaseModel, Field


# ──────────────── Payment initiation ────────────────

class PaymentInitiateRequest(BaseModel):
    # Validated by the service so that bad amounts get the structured error body
    amount: Any = Field(None, description="Top-up amount, 1 – 100000")
    origin_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("originUrl", "siteUrl", "origin_url"),
        description="Frontend origin used for the success/cancel URLs",
    )


class PaymentInitiateResponse(BaseModel):
    success: bool = True
    redirect_url: str = Field(..., serialization_alias="redirectUrl")
    identifier: str


class PaymentErrorDetail(BaseModel):
    code: str
    title: str
    description: str
    suggestion: str  # manual | retry | support


class PaymentErrorResponse(BaseModel):
    success: bool = False
    error: str
    payment_error: PaymentErrorDetail = Field(..., serialization_alias="paymentError")


# ──────────────── Ledger reads ────────────────

class TransactionResponse(BaseModel):
    identifier: str
    amount: float
    credits: float
    status: str
    redirect_url: Optional[str] = None
    payment_gateway: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ──────────────── IPN ────────────────

class IpnAckResponse(BaseModel):
    success: bool = True
    message: str


# ──────────────── Admin ────────────────

class OnlinePaymentEntry(TransactionResponse):
    user_id: str
    user_email: Optional[str] = None


class OnlinePaymentsResponse(BaseModel):
    total_successful: int
    total_amount: float
    today_count: int
    today_amount: float
    transactions: List[OnlinePaymentEntry]


class PaymentEventEntry(BaseModel):
    id: int
    identifier: str
    action: str
    payload_hash: Optional[str] = None
    timestamp: datetime
    event_metadata: Optional[Dict] = None

    class Config:
        from_attributes = True


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    gateway: str
    uptime_seconds: float
    version: str

"""
IPN Service — Applies gateway payment notifications to the ledger.

Notifications arrive unauthenticated, possibly duplicated or out of order,
as form-encoded, JSON or untyped bodies with several spellings for the same
field. Every outcome, including a repeat of an already-applied notification,
is acknowledged unless storage itself fails.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.exceptions import MalformedNotification, MissingIdentifier, TransactionNotFound
from storefront.models.payment import STATUS_FAILED, STATUS_CANCELLED
from storefront.services.audit_service import AuditService
from storefront.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)
settings = get_settings()

# Logical field → accepted payload keys, first non-empty wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "identifier": ("identifier", "payment_id"),
    "status": ("status", "payment_status"),
    "transaction_id": ("transaction_id", "trx_id", "api_transaction_id"),
    "gateway": ("gateway", "payment_gateway", "method"),
}

SUCCESS_STATUSES = frozenset({"completed", "success", "paid"})
CANCELLED_STATUSES = frozenset({"cancelled", "canceled"})
FAILURE_STATUSES = frozenset({"failed"}) | CANCELLED_STATUSES


class StatusBucket(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class IpnFields:
    identifier: Optional[str]
    status: str
    transaction_id: Optional[str]
    gateway: Optional[str]


@dataclass(frozen=True)
class IpnOutcome:
    identifier: str
    bucket: StatusBucket
    performed: bool
    message: str


# ─── Parsing ─────────────────────────────────────────────────────────

def parse_body(body: bytes, content_type: Optional[str], strict: Optional[bool] = None) -> dict:
    """Decode a notification body into a flat dict.

    Declared form or JSON bodies are parsed as declared; when that fails,
    or no usable type is declared, the text is sniffed as JSON and then as
    URL-encoded. With ``strict`` the sniffing fallback is disabled.
    """
    strict = settings.IPN_STRICT_PARSING if strict is None else strict
    text = (body or b"").decode("utf-8", errors="replace")
    declared = (content_type or "").lower()

    if "application/x-www-form-urlencoded" in declared:
        data = _parse_form(text)
        if strict or _has_known_field(data):
            return data
        sniffed = _parse_json(text)
        if sniffed is not None:
            logger.warning("IPN declared form but body is JSON; using JSON")
            return sniffed
        return data

    if "application/json" in declared:
        data = _parse_json(text)
        if data is not None:
            return data
        if strict:
            raise MalformedNotification("Invalid JSON body")
        logger.warning("IPN declared JSON but body did not parse; sniffing")
    elif strict:
        raise MalformedNotification(f"Unsupported content type: {content_type or 'none'}")

    data = _parse_json(text)
    if data is not None:
        return data
    return _parse_form(text)


def _parse_json(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _parse_form(text: str) -> dict:
    return dict(parse_qsl(text, keep_blank_values=True))


def _has_known_field(data: dict) -> bool:
    return any(key in data for aliases in FIELD_ALIASES.values() for key in aliases)


def first_value(data: dict, aliases: tuple[str, ...]) -> Optional[str]:
    for key in aliases:
        value = data.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def extract_fields(data: dict) -> IpnFields:
    return IpnFields(
        identifier=first_value(data, FIELD_ALIASES["identifier"]),
        status=(first_value(data, FIELD_ALIASES["status"]) or "").lower(),
        transaction_id=first_value(data, FIELD_ALIASES["transaction_id"]),
        gateway=first_value(data, FIELD_ALIASES["gateway"]),
    )


def classify_status(status: str) -> StatusBucket:
    status = (status or "").strip().lower()
    if status in SUCCESS_STATUSES:
        return StatusBucket.SUCCESS
    if status in FAILURE_STATUSES:
        return StatusBucket.FAILURE
    return StatusBucket.INDETERMINATE


# ─── Processing ──────────────────────────────────────────────────────

class IpnService:
    """Correlates a notification with its ledger row and applies it exactly once."""

    @staticmethod
    def process(db: Session, payload: dict, ip_address: Optional[str] = None) -> IpnOutcome:
        """Apply one parsed notification.

        Raises:
            MissingIdentifier: no identifier under any alias.
            TransactionNotFound: identifier unknown to the ledger.
            SQLAlchemyError / LookupError: storage failure, caller answers 5xx.
        """
        fields = extract_fields(payload)
        if not fields.identifier:
            raise MissingIdentifier("Missing identifier")

        txn = LedgerService.get_by_identifier(db, fields.identifier)
        if txn is None:
            raise TransactionNotFound("Transaction not found")

        identifier = fields.identifier
        bucket = classify_status(fields.status)
        logger.info("IPN for %s: status=%r bucket=%s current=%s",
                    identifier, fields.status, bucket.value, txn.status)
        AuditService.log(db, identifier, "IPN_RECEIVED", payload=payload, ip_address=ip_address,
                         metadata={"status": fields.status, "current_status": txn.status})

        if bucket is StatusBucket.SUCCESS:
            result = LedgerService.complete_payment(
                db, identifier,
                gateway_transaction_id=fields.transaction_id or "",
                gateway=fields.gateway or "unknown",
                raw_response=payload,
            )
            action, message = "PAYMENT_COMPLETED", "Payment processed"
        elif bucket is StatusBucket.FAILURE:
            failure_status = STATUS_CANCELLED if fields.status in CANCELLED_STATUSES else STATUS_FAILED
            result = LedgerService.record_failure(db, identifier, failure_status, payload)
            action = "PAYMENT_CANCELLED" if failure_status == STATUS_CANCELLED else "PAYMENT_FAILED"
            message = "Payment status updated"
        else:
            result = LedgerService.log_notification(db, identifier, payload)
            AuditService.log(db, identifier, "IPN_LOGGED", payload=payload, ip_address=ip_address,
                             metadata={"status": fields.status})
            return IpnOutcome(identifier, bucket, result.performed, "Status logged")

        if result.performed:
            AuditService.log(db, identifier, action, payload=payload, ip_address=ip_address,
                             metadata={"transaction_id": fields.transaction_id, "gateway": fields.gateway})
        else:
            logger.info("Duplicate IPN for %s ignored (status %s)", identifier, result.status)
            AuditService.log(db, identifier, "IPN_DUPLICATE", payload=payload, ip_address=ip_address,
                             metadata={"status": fields.status, "current_status": result.status})
            message = "Payment already processed"

        return IpnOutcome(identifier, bucket, result.performed, message)

    @staticmethod
    def handle(db: Session, body: bytes, content_type: Optional[str], ip_address: Optional[str] = None) -> tuple[int, dict]:
        """Parse and apply a raw notification; always returns ``(http_status, json_body)``."""
        try:
            payload = parse_body(body, content_type)
            logger.info("IPN data received: %s", json.dumps(payload, default=str)[:2000])
            outcome = IpnService.process(db, payload, ip_address=ip_address)
        except (MalformedNotification, MissingIdentifier, TransactionNotFound) as e:
            logger.warning("IPN rejected (%s): %s", e.status_code, e.message)
            return e.status_code, {"error": e.message}
        except (SQLAlchemyError, LookupError) as e:
            db.rollback()
            logger.error("IPN processing failed: %s", e)
            return 500, {"error": "Processing failed"}
        except Exception:
            db.rollback()
            logger.exception("IPN processing error")
            return 500, {"error": "Internal server error"}

        return 200, {"success": True, "message": outcome.message}

from storefront.services.audit_service import AuditService
from storefront.services.auth_service import AuthService, Identity
from storefront.services.gateway_client import GatewayClient, GatewayResponse
from storefront.services.ledger_service import LedgerService, LedgerResult
from storefront.services.ipn_service import IpnService
from storefront.services.payment_service import PaymentService

__all__ = [
    "AuditService", "AuthService", "Identity",
    "GatewayClient", "GatewayResponse",
    "LedgerService", "LedgerResult",
    "IpnService", "PaymentService",
]

from storefront.models.profile import Profile, UserRole
from storefront.models.payment import PaymentTransaction
from storefront.models.audit import PaymentEvent

__all__ = ["Profile", "UserRole", "PaymentTransaction", "PaymentEvent"]

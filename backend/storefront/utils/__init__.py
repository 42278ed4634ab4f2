from storefront.utils.hashing import generate_hash
from storefront.utils.identifiers import generate_identifier, to_base36
from storefront.utils.validators import parse_amount, split_customer_name

__all__ = [
    "generate_hash",
    "generate_identifier", "to_base36",
    "parse_amount", "split_customer_name",
]

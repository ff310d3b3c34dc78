"""
Paymob Transaction Callback Signature

Paymob signs its transaction-processed callback with HMAC-SHA512 (hex)
keyed by the merchant's HMAC secret. The message is the concatenation of a
fixed, ordered list of transaction fields. Changing the order or the set
of fields produces a different digest and every callback fails
authentication, so the list lives here and nowhere else.
"""

import hashlib
import hmac
import logging
from typing import Any

logger = logging.getLogger(__name__)

# Paymob's documented order. Dotted names address nested objects.
HMAC_FIELDS: tuple[str, ...] = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)


def extract_transaction(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Return the transaction object from a callback body.

    Paymob wraps it as {"type": "TRANSACTION", "obj": {...}}; a bare
    transaction object is accepted as well.
    """
    obj = payload.get("obj")
    if isinstance(obj, dict):
        return obj
    return payload


def _lookup(transaction: dict[str, Any], dotted: str) -> Any:
    value: Any = transaction
    for key in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def signature_message(transaction: dict[str, Any]) -> str:
    """Concatenate the signed fields of a transaction in Paymob's order."""
    return "".join(_render(_lookup(transaction, field)) for field in HMAC_FIELDS)


def compute_signature(transaction: dict[str, Any], secret: str) -> str:
    """HMAC-SHA512 hex digest of the transaction's signed fields."""
    return hmac.new(
        secret.encode(),
        signature_message(transaction).encode(),
        hashlib.sha512,
    ).hexdigest()


def verify_signature(
    transaction: dict[str, Any],
    received: str,
    secret: str,
) -> tuple[bool, str]:
    """
    Check a received signature in constant time.

    An unset secret never verifies.

    Returns:
        Tuple of (valid, computed digest)
    """
    if not secret:
        logger.error("PAYMOB_HMAC_SECRET not configured, rejecting callback")
        return False, ""

    computed = compute_signature(transaction, secret)
    valid = hmac.compare_digest(computed.encode(), received.strip().lower().encode())
    return valid, computed

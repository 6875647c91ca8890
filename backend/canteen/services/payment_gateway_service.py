"""Razorpay payment gateway adapter.

Wraps the official ``razorpay`` SDK for the two round trips the settlement
flow needs (creating a gateway order and fetching a payment's authoritative
status) and verifies checkout signatures locally with HMAC-SHA256.

The SDK is synchronous, so routes calling into this adapter are plain
``def`` handlers and FastAPI runs them in its threadpool.
"""

import hashlib
import hmac
import logging
import secrets
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends

from canteen.core.config import settings
from canteen.core.errors import GatewayUnavailable

logger = logging.getLogger(__name__)

SUCCESSFUL_PAYMENT_STATUSES = frozenset({"captured", "authorized"})
MAX_RECEIPT_LENGTH = 40


def to_minor_units(amount: Decimal) -> int:
    """Convert rupees to paise."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def generate_receipt(vendor_id: int) -> str:
    """Merchant receipt id for one outlet's payment, at most 40 characters."""
    return f"rcpt_{vendor_id}_{secrets.token_hex(8)}"[:MAX_RECEIPT_LENGTH]


def compute_signature(secret: str, gateway_order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest of ``"<order_id>|<payment_id>"``."""
    message = f"{gateway_order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, gateway_order_id: str, payment_id: str, signature: str) -> bool:
    expected = compute_signature(secret, gateway_order_id, payment_id)
    return hmac.compare_digest(expected, signature or "")


class RazorpayGateway:
    """Thin wrapper around ``razorpay.Client``.

    Pass ``client`` to substitute a pre-built client (tests use a mock).
    Without one the real SDK client is built on first use.
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        currency: Optional[str] = None,
        client: Any = None,
    ):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.currency = currency or settings.payment_currency
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise GatewayUnavailable("Payment gateway is not configured")

    @property
    def client(self):
        if self._client is None:
            self._require_configured()
            import razorpay

            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def create_order(self, amount_minor: int, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Create a gateway order for ``amount_minor`` paise."""
        self._require_configured()
        try:
            order = self.client.order.create({
                "amount": amount_minor,
                "currency": self.currency,
                "receipt": receipt,
                "notes": notes or {},
                "payment_capture": 1,
            })
        except Exception as e:
            logger.error(f"Razorpay order creation failed for receipt {receipt}: {e}")
            raise GatewayUnavailable("Could not create payment order") from e
        logger.info(f"Created gateway order {order.get('id')} for {amount_minor} paise ({receipt})")
        return order

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch the gateway's view of a payment (status, amount, order id)."""
        self._require_configured()
        try:
            return self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error(f"Razorpay payment fetch failed for {payment_id}: {e}")
            raise GatewayUnavailable("Could not fetch payment status") from e

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        self._require_configured()
        return verify_signature(self.key_secret, gateway_order_id, payment_id, signature)


_gateway: Optional[RazorpayGateway] = None


def get_gateway() -> RazorpayGateway:
    """FastAPI dependency returning the process-wide gateway adapter."""
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway()
    return _gateway


PaymentGateway = Annotated[RazorpayGateway, Depends(get_gateway)]

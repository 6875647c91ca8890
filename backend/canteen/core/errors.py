"""Domain exceptions raised by services and rendered by the API layer.

Every exception carries a machine-readable ``code`` and the HTTP status the
API should answer with. Services never build HTTP responses themselves; the
handler registered in ``canteen.main`` turns these into JSON bodies of the
form ``{"error": code, "detail": message}``.
"""

from typing import Any, Optional


class CanteenError(Exception):
    """Base class for all expected, client-visible failures."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str = "", **context: Any):
        self.message = message or self.__class__.__name__
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        if self.context:
            body.update(self.context)
        return body


class ValidationError(CanteenError):
    """Malformed or missing input. Nothing was written."""

    code = "validation_error"


class ItemUnavailable(CanteenError):
    """A referenced menu item is missing, disabled, or its outlet is closed."""

    code = "item_unavailable"

    def __init__(self, menu_item_id: Optional[int] = None, message: str = ""):
        self.menu_item_id = menu_item_id
        super().__init__(
            message or f"Menu item {menu_item_id} is not available",
            menu_item_id=menu_item_id,
        )


class InsufficientBalance(CanteenError):
    """The payer's wallet cannot cover the order total."""

    code = "insufficient_balance"

    def __init__(self, balance, required):
        self.balance = balance
        self.required = required
        super().__init__(
            "Insufficient wallet balance",
            balance=str(balance),
            required=str(required),
        )


class InvalidSignature(CanteenError):
    """The payment signature does not match the gateway order/payment pair."""

    code = "invalid_signature"


class PaymentNotSuccessful(CanteenError):
    """The gateway reports the payment as anything other than captured/authorized."""

    code = "payment_not_successful"


class PermissionDenied(CanteenError):
    status_code = 403
    code = "permission_denied"


class NotFound(CanteenError):
    status_code = 404
    code = "not_found"


class Conflict(CanteenError):
    status_code = 409
    code = "conflict"


class StoreError(CanteenError):
    """The enclosing database transaction failed and was rolled back."""

    status_code = 500
    code = "store_error"


class GatewayUnavailable(CanteenError):
    """Gateway credentials are missing or the gateway call itself failed."""

    status_code = 503
    code = "gateway_unavailable"


class InvalidTransition(Conflict):
    """A status change rejected by the forward-only status machine."""

    code = "invalid_transition"

"""Order, checkout and payment schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from canteen.services.cart_service import CartLine


class CartItemIn(BaseModel):
    """One cart line. Quantity rules are enforced by the cart service."""

    menu_item_id: int = Field(..., validation_alias=AliasChoices("menu_item_id", "id"))
    qty: int = Field(..., validation_alias=AliasChoices("qty", "quantity"))
    price: Optional[Decimal] = None

    def to_line(self) -> CartLine:
        return CartLine(menu_item_id=self.menu_item_id, qty=self.qty, unit_price=self.price)


def to_cart_lines(items: list[CartItemIn]) -> list[CartLine]:
    return [item.to_line() for item in items]


class PlaceOrderRequest(BaseModel):
    """Wallet checkout."""

    items: list[CartItemIn] = []


class SegregateRequest(BaseModel):
    items: list[CartItemIn] = []


class StatusUpdateRequest(BaseModel):
    status: str
    vendor_id: Optional[int] = None


class CreatePaymentOrderRequest(BaseModel):
    """Open a gateway payment for one outlet's share of the cart."""

    amount: Optional[Decimal] = None
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    vendor_upi_id: Optional[str] = None
    receipt: Optional[str] = Field(None, max_length=40)
    items: list[CartItemIn] = []


class VerifyPaymentRequest(BaseModel):
    """Checkout callback payload forwarded by the client.

    The order is settled from the lines stored when the payment was opened;
    cart items sent along with the callback are ignored.
    """

    gateway_order_id: str = Field(
        ..., validation_alias=AliasChoices("gateway_order_id", "razorpay_order_id")
    )
    gateway_payment_id: str = Field(
        ..., validation_alias=AliasChoices("gateway_payment_id", "razorpay_payment_id")
    )
    gateway_signature: str = Field(
        ..., validation_alias=AliasChoices("gateway_signature", "razorpay_signature")
    )
    vendor_id: Optional[int] = None
    amount: Optional[Decimal] = None

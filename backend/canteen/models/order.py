"""Customer order models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from canteen.db.base import Base, TimestampMixin
from canteen.models.validators import at_least_one, non_negative


class OrderStatus(str, Enum):
    """Fulfilment status of an order, in lifecycle order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return ORDER_STATUS_SEQUENCE.index(self)


ORDER_STATUS_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
]


class PaymentMethod(str, Enum):
    WALLET = "wallet"
    RAZORPAY = "razorpay"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Order(Base, TimestampMixin):
    """One settled order.

    ``total_amount`` is fixed at creation and equals the sum of the line
    snapshots. After creation only ``status`` changes.
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("token_scope", "token", name="uq_orders_scope_token"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Set for gateway orders, which always belong to a single outlet
    vendor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    token: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    token_scope: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    order_of_day: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod), default=PaymentMethod.WALLET, nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), default=PaymentStatus.COMPLETED, nullable=False
    )
    gateway_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, nullable=True
    )

    user: Mapped["User"] = relationship("User")
    vendor: Mapped[Optional["Vendor"]] = relationship("Vendor")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """A line of an order with the price and outlet captured at order time."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("qty >= 1", name="ck_order_items_qty_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # No cascade: referenced menu items are soft-deleted instead
    menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship("MenuItem")
    vendor: Mapped["Vendor"] = relationship("Vendor")

    @validates("qty")
    def _validate_qty(self, key, value):
        return at_least_one(key, value)

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.qty


class OrderCounter(Base):
    """Daily counter behind wallet-order tokens."""

    __tablename__ = "order_counters"

    order_date: Mapped[date] = mapped_column(Date, primary_key=True)
    counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class VendorOrderCounter(Base):
    """Per-outlet daily counter behind gateway-order tokens."""

    __tablename__ = "vendor_order_counters"

    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="CASCADE"), primary_key=True
    )
    order_date: Mapped[date] = mapped_column(Date, primary_key=True)
    counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


from canteen.models.menu import MenuItem  # noqa: E402
from canteen.models.user import User  # noqa: E402
from canteen.models.vendor import Vendor  # noqa: E402

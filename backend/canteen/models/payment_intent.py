"""Gateway payment intents.

An intent records exactly what the payer was asked to pay for when the
gateway order was opened: the outlet, the lines and the prices at that
moment. Verification settles from this snapshot, so menu edits made while
the payer is in the checkout UI cannot change what a captured payment buys.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum as SQLEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canteen.db.base import Base, TimestampMixin


class PaymentIntentStatus(str, Enum):
    OPEN = "open"
    SETTLED = "settled"


class PaymentIntent(Base, TimestampMixin):
    """One outlet's priced sub-order, keyed by the gateway order id."""

    __tablename__ = "payment_intents"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_intents_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    gateway_order_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    receipt: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[PaymentIntentStatus] = mapped_column(
        SQLEnum(PaymentIntentStatus), default=PaymentIntentStatus.OPEN, nullable=False
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )

    items: Mapped[list["PaymentIntentItem"]] = relationship(
        "PaymentIntentItem",
        back_populates="intent",
        cascade="all, delete-orphan",
        order_by="PaymentIntentItem.id",
    )


class PaymentIntentItem(Base):
    """A priced line of an intent."""

    __tablename__ = "payment_intent_items"
    __table_args__ = (
        CheckConstraint("qty >= 1", name="ck_payment_intent_items_qty_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    intent_id: Mapped[int] = mapped_column(
        ForeignKey("payment_intents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Referenced items are soft-deleted like those of settled orders
    menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    intent: Mapped["PaymentIntent"] = relationship("PaymentIntent", back_populates="items")

"""Menu item model."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from canteen.db.base import Base, TimestampMixin
from canteen.models.validators import non_negative


class MenuItem(Base, TimestampMixin):
    """A dish sold by one outlet.

    The (vendor, name, price) triple is unique: re-adding an item at a new
    price creates a new row instead of touching the historical one.
    """

    __tablename__ = "menu_items"
    __table_args__ = (
        UniqueConstraint("vendor_id", "name", "price", name="uq_menu_items_vendor_name_price"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    vendor: Mapped["Vendor"] = relationship("Vendor", back_populates="menu_items")

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)


from canteen.models.vendor import Vendor  # noqa: E402

"""Outlet (vendor) models."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canteen.db.base import Base, CreatedAtMixin, TimestampMixin

UPI_ID_PATTERN = r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+$"


class Vendor(Base, TimestampMixin):
    """A campus outlet that sells menu items.

    ``wallet_balance`` accumulates gateway-settled revenue and mirrors the
    outlet's balance-affecting ledger entries.
    """

    __tablename__ = "vendors"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_vendors_wallet_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    outlet_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_online: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    wallet_balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), server_default="0", nullable=False
    )
    upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    managers: Mapped[list["VendorUser"]] = relationship(
        "VendorUser", back_populates="vendor", cascade="all, delete-orphan"
    )
    menu_items: Mapped[list["MenuItem"]] = relationship("MenuItem", back_populates="vendor")


class VendorUser(Base, CreatedAtMixin):
    """Link between an outlet and a user who manages it."""

    __tablename__ = "vendor_users"
    __table_args__ = (
        UniqueConstraint("vendor_id", "user_id", name="uq_vendor_users_vendor_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), default="manager", nullable=False)

    vendor: Mapped["Vendor"] = relationship("Vendor", back_populates="managers")
    user: Mapped["User"] = relationship("User", back_populates="vendor_links")


from canteen.models.menu import MenuItem  # noqa: E402
from canteen.models.user import User  # noqa: E402

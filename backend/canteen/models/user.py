"""User model."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from canteen.core.rbac import UserRole
from canteen.db.base import Base, TimestampMixin
from canteen.models.validators import non_negative


class User(Base, TimestampMixin):
    """Customer, student, vendor manager or admin account.

    ``wallet_balance`` is a cached aggregate of the user's balance-affecting
    ledger entries. It is only ever changed with relative SQL updates.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.CUSTOMER,
        nullable=False,
    )
    wallet_balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), server_default="0", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    vendor_links: Mapped[list["VendorUser"]] = relationship(
        "VendorUser", back_populates="user", cascade="all, delete-orphan"
    )

    @validates("wallet_balance")
    def _validate_wallet_balance(self, key, value):
        return non_negative(key, value)


from canteen.models.vendor import VendorUser  # noqa: E402

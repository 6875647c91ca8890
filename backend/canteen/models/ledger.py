"""Append-only money ledger.

Every change to a user or outlet wallet is recorded here. Rows are never
updated or deleted through the ORM; the administrative bulk reset clears the
table with a bulk statement.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from canteen.db.base import Base, CreatedAtMixin


class TransactionDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class Transaction(Base, CreatedAtMixin):
    """One immutable credit or debit against exactly one party.

    ``affects_balance`` is False for entries that document money moving
    outside the wallet, such as a UPI payment made directly to an outlet.
    Only balance-affecting entries are summed when reconciling a wallet.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "(user_id IS NULL) <> (vendor_id IS NULL)",
            name="ck_transactions_single_party",
        ),
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_vendor_created", "vendor_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    vendor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("vendors.id", ondelete="CASCADE"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    direction: Mapped[TransactionDirection] = mapped_column(
        SQLEnum(TransactionDirection), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    affects_balance: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


@event.listens_for(Transaction, "before_update")
def _reject_transaction_update(mapper, connection, target):
    raise ValueError(f"Ledger entry {target.id} is append-only and cannot be updated")


@event.listens_for(Transaction, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise ValueError(f"Ledger entry {target.id} is append-only and cannot be deleted")

"""Ledger bookkeeping shared by settlement and wallet operations.

Balances on users and outlets are cached aggregates of their ledger entries.
They are only changed here, with relative SQL updates, and every change is
paired with an appended ``Transaction`` by the caller inside the same
database transaction.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from canteen.models.ledger import Transaction, TransactionDirection
from canteen.models.user import User
from canteen.models.vendor import Vendor


def record_entry(
    db: Session,
    *,
    amount: Decimal,
    direction: TransactionDirection,
    description: str,
    user_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    reference_id: Optional[str] = None,
    payment_id: Optional[str] = None,
    affects_balance: bool = True,
) -> Transaction:
    """Append one ledger entry for exactly one party. Does not commit."""
    if (user_id is None) == (vendor_id is None):
        raise ValueError("A ledger entry belongs to exactly one of user_id or vendor_id")
    entry = Transaction(
        user_id=user_id,
        vendor_id=vendor_id,
        amount=amount,
        direction=direction,
        description=description,
        reference_id=reference_id,
        payment_id=payment_id,
        affects_balance=affects_balance,
    )
    db.add(entry)
    return entry


def debit_user_wallet(db: Session, user_id: int, amount: Decimal) -> bool:
    """Decrease a wallet by ``amount`` if it holds at least that much.

    Returns False when the guarded update matched no row, meaning the user
    is gone or the balance was drained by a concurrent settlement.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.wallet_balance >= amount)
        .values(wallet_balance=User.wallet_balance - amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def credit_user_wallet(db: Session, user_id: int, amount: Decimal) -> bool:
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(wallet_balance=User.wallet_balance + amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def credit_vendor_wallet(db: Session, vendor_id: int, amount: Decimal) -> bool:
    result = db.execute(
        update(Vendor)
        .where(Vendor.id == vendor_id)
        .values(wallet_balance=Vendor.wallet_balance + amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def ledger_balance(db: Session, *, user_id: Optional[int] = None, vendor_id: Optional[int] = None) -> Decimal:
    """Recompute a party's balance from its balance-affecting ledger entries."""
    signed = case(
        (Transaction.direction == TransactionDirection.CREDIT, Transaction.amount),
        else_=-Transaction.amount,
    )
    query = select(func.coalesce(func.sum(signed), 0)).where(Transaction.affects_balance.is_(True))
    if user_id is not None:
        query = query.where(Transaction.user_id == user_id)
    else:
        query = query.where(Transaction.vendor_id == vendor_id)
    return Decimal(str(db.scalar(query))).quantize(Decimal("0.01"))


def recent_entries(
    db: Session,
    *,
    user_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    limit: int = 20,
) -> list[Transaction]:
    query = select(Transaction)
    if user_id is not None:
        query = query.where(Transaction.user_id == user_id)
    else:
        query = query.where(Transaction.vendor_id == vendor_id)
    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
    return list(db.scalars(query))

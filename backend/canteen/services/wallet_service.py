"""Wallet top-ups, statements and offline balance reconciliation."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from canteen.core.config import settings
from canteen.core.errors import NotFound, StoreError, ValidationError
from canteen.models.ledger import Transaction, TransactionDirection
from canteen.models.user import User
from canteen.models.vendor import Vendor
from canteen.services import ledger_service

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def serialize_transaction(entry: Transaction) -> dict:
    return {
        "id": entry.id,
        "amount": str(entry.amount),
        "type": entry.direction.value,
        "description": entry.description,
        "reference_id": entry.reference_id,
        "payment_id": entry.payment_id,
        "affects_balance": entry.affects_balance,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


@dataclass
class ReconciliationReport:
    """Cached balance compared with the balance recomputed from the ledger."""

    party: str
    party_id: int
    cached_balance: Decimal
    ledger_balance: Decimal

    @property
    def drift(self) -> Decimal:
        return self.cached_balance - self.ledger_balance

    @property
    def consistent(self) -> bool:
        return self.drift == 0


class WalletService:
    def __init__(self, db: Session):
        self.db = db

    def top_up(self, user_id: int, amount) -> Decimal:
        """Credit the wallet and record the credit; returns the new balance."""
        amount = Decimal(str(amount)).quantize(CENT)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        if amount > settings.wallet_topup_max:
            raise ValidationError(f"Amount cannot exceed {settings.wallet_topup_max}")

        try:
            if not ledger_service.credit_user_wallet(self.db, user_id, amount):
                raise NotFound("User not found")
            ledger_service.record_entry(
                self.db,
                user_id=user_id,
                amount=amount,
                direction=TransactionDirection.CREDIT,
                description="Wallet top-up",
            )
            self.db.commit()
        except NotFound:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Wallet top-up for user {user_id} rolled back: {e}")
            raise StoreError("Top-up could not be saved, please retry") from e

        balance = self.db.scalar(select(User.wallet_balance).where(User.id == user_id))
        logger.info(f"User {user_id} topped up {amount}, balance {balance}")
        return balance

    def user_summary(self, user_id: int, limit: int = 20) -> dict:
        balance = self.db.scalar(select(User.wallet_balance).where(User.id == user_id))
        if balance is None:
            raise NotFound("User not found")
        entries = ledger_service.recent_entries(self.db, user_id=user_id, limit=limit)
        return {
            "balance": str(balance),
            "transactions": [serialize_transaction(e) for e in entries],
        }

    def vendor_summary(self, vendor_id: int, limit: int = 20) -> dict:
        vendor = self.db.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFound("Outlet not found")
        entries = ledger_service.recent_entries(self.db, vendor_id=vendor_id, limit=limit)
        return {
            "vendor_id": vendor.id,
            "outlet_name": vendor.outlet_name,
            "balance": str(vendor.wallet_balance),
            "upi_id": vendor.upi_id,
            "transactions": [serialize_transaction(e) for e in entries],
        }

    def reconcile_user(self, user_id: int) -> ReconciliationReport:
        cached = self.db.scalar(select(User.wallet_balance).where(User.id == user_id))
        if cached is None:
            raise NotFound("User not found")
        return ReconciliationReport(
            party="user",
            party_id=user_id,
            cached_balance=Decimal(cached).quantize(CENT),
            ledger_balance=ledger_service.ledger_balance(self.db, user_id=user_id),
        )

    def reconcile_vendor(self, vendor_id: int) -> ReconciliationReport:
        cached = self.db.scalar(select(Vendor.wallet_balance).where(Vendor.id == vendor_id))
        if cached is None:
            raise NotFound("Outlet not found")
        return ReconciliationReport(
            party="vendor",
            party_id=vendor_id,
            cached_balance=Decimal(cached).quantize(CENT),
            ledger_balance=ledger_service.ledger_balance(self.db, vendor_id=vendor_id),
        )

    def reconcile_all(self) -> list[ReconciliationReport]:
        """Reports for every party whose cached balance drifted from its ledger."""
        reports = [self.reconcile_user(uid) for uid in self.db.scalars(select(User.id))]
        reports += [self.reconcile_vendor(vid) for vid in self.db.scalars(select(Vendor.id))]
        drifted = [r for r in reports if not r.consistent]
        for report in drifted:
            logger.warning(
                f"Balance drift for {report.party} {report.party_id}: cached "
                f"{report.cached_balance}, ledger {report.ledger_balance}"
            )
        return drifted

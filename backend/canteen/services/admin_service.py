"""Administrative bulk reset of accounts and order history.

Outlets and their menus survive. Every user, order, payment intent,
ledger entry, notification and token counter is removed and outlet wallets
go back to zero. Token counters are cleared together with the orders, so
tokens for today restart from 01 after a reset.
"""

import logging

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from canteen.core.errors import StoreError
from canteen.models.ledger import Transaction
from canteen.models.notification import Notification
from canteen.models.order import Order, OrderCounter, OrderItem, VendorOrderCounter
from canteen.models.payment_intent import PaymentIntent, PaymentIntentItem
from canteen.models.user import User
from canteen.models.vendor import Vendor, VendorUser

logger = logging.getLogger(__name__)

# Children before parents so foreign keys never dangle mid-transaction
RESET_ORDER = (
    ("vendor_users", VendorUser),
    ("notifications", Notification),
    ("transactions", Transaction),
    ("payment_intent_items", PaymentIntentItem),
    ("payment_intents", PaymentIntent),
    ("order_items", OrderItem),
    ("orders", Order),
    ("order_counters", OrderCounter),
    ("vendor_order_counters", VendorOrderCounter),
)


def reset_ledger(db: Session) -> dict:
    """Wipe users and order history in one transaction; returns deleted row counts."""
    counts = {}
    try:
        for name, model in RESET_ORDER:
            result = db.execute(delete(model).execution_options(synchronize_session=False))
            counts[name] = result.rowcount
        db.execute(
            update(Vendor).values(wallet_balance=0).execution_options(synchronize_session=False)
        )
        counts["users"] = db.execute(
            delete(User).execution_options(synchronize_session=False)
        ).rowcount
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Bulk reset rolled back: {e}")
        raise StoreError("Reset failed, nothing was deleted") from e

    db.expunge_all()
    logger.warning(f"Bulk reset completed: {counts}")
    return counts

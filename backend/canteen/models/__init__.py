"""Database models."""

from canteen.models.user import User
from canteen.models.vendor import Vendor, VendorUser
from canteen.models.menu import MenuItem
from canteen.models.order import (
    ORDER_STATUS_SEQUENCE,
    Order,
    OrderCounter,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    VendorOrderCounter,
)
from canteen.models.payment_intent import PaymentIntent, PaymentIntentItem, PaymentIntentStatus
from canteen.models.ledger import Transaction, TransactionDirection
from canteen.models.notification import Notification

__all__ = [
    "User",
    "Vendor",
    "VendorUser",
    "MenuItem",
    "ORDER_STATUS_SEQUENCE",
    "Order",
    "OrderCounter",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "VendorOrderCounter",
    "PaymentIntent",
    "PaymentIntentItem",
    "PaymentIntentStatus",
    "Transaction",
    "TransactionDirection",
    "Notification",
]

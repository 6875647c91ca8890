"""Vendor-driven order status changes and the customer notifications they emit.

In the default lenient mode an outlet may set any of the five statuses at any
time, including re-opening a completed order to correct a mistake. With
``strict_status_transitions`` enabled only the next status in the lifecycle
is accepted and ``completed`` is final.
"""

import logging
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from canteen.core.config import settings
from canteen.core.errors import InvalidTransition, NotFound, StoreError, ValidationError
from canteen.models.order import ORDER_STATUS_SEQUENCE, Order, OrderItem, OrderStatus
from canteen.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

STATUS_NOTIFICATION_TITLE = "Order Status Updated"

STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: "Your order {token} has been confirmed and is being prepared.",
    OrderStatus.PREPARING: "Your order {token} is now being prepared by the vendor.",
    OrderStatus.READY: (
        "Great news! Your order {token} is ready for pickup. "
        "Please collect it from the counter."
    ),
    OrderStatus.COMPLETED: "Your order {token} has been completed. Thank you for ordering with us!",
}
GENERIC_STATUS_MESSAGE = "Your order {token} status has been updated to {status}."


def build_status_message(token: str, status) -> str:
    """Customer-facing text for a status change; unknown statuses get the generic text."""
    value = status.value if isinstance(status, OrderStatus) else str(status)
    try:
        template = STATUS_MESSAGES.get(OrderStatus(value), GENERIC_STATUS_MESSAGE)
    except ValueError:
        template = GENERIC_STATUS_MESSAGE
    return template.format(token=token, status=value)


def parse_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in ORDER_STATUS_SEQUENCE)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")


def check_transition(current: OrderStatus, new: OrderStatus, strict: bool) -> None:
    """Raise ``InvalidTransition`` if strict mode forbids ``current -> new``."""
    if not strict:
        return
    if new.rank != current.rank + 1:
        raise InvalidTransition(
            f"Cannot change order status from {current.value} to {new.value}",
            current=current.value,
            requested=new.value,
        )


class OrderStatusService:
    def __init__(self, db: Session, strict: Optional[bool] = None):
        self.db = db
        self.strict = settings.strict_status_transitions if strict is None else strict
        self.notifications = NotificationService(db)

    def _owned_order(self, order_id: int, vendor_id: int) -> Order:
        """Load an order that contains at least one line of ``vendor_id``."""
        has_line = exists().where(OrderItem.order_id == Order.id, OrderItem.vendor_id == vendor_id)
        order = self.db.scalar(
            select(Order).where(Order.id == order_id, has_line).with_for_update()
        )
        if order is None:
            raise NotFound("Order not found")
        return order

    def set_status(self, order_id: int, new_status, acting_vendor_id: int) -> Order:
        """Move an order to ``new_status`` and notify its payer, atomically."""
        status = parse_status(new_status)
        order = self._owned_order(order_id, acting_vendor_id)
        previous = order.status
        check_transition(previous, status, self.strict)

        try:
            order.status = status
            self.notifications.push(
                order.user_id,
                title=STATUS_NOTIFICATION_TITLE,
                message=build_status_message(order.token, status),
                type="order",
                reference_id=order.token,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Status change for order {order_id} rolled back: {e}")
            raise StoreError("Order status could not be updated") from e

        self.db.refresh(order)
        logger.info(
            f"Order {order.token} moved {previous.value} -> {status.value} by outlet {acting_vendor_id}"
        )
        return order

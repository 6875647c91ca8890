"""Read side of orders: payer history and outlet queues."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from canteen.models.order import Order, OrderItem


def serialize_order(order: Order, vendor_id: Optional[int] = None) -> dict:
    """Order with its lines; ``vendor_id`` limits the lines to one outlet."""
    items = [
        item for item in order.items
        if vendor_id is None or item.vendor_id == vendor_id
    ]
    return {
        "id": order.id,
        "token": order.token,
        "status": order.status.value,
        "total_amount": str(order.total_amount),
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "vendor_id": order.vendor_id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "customer_name": order.user.name if order.user else None,
        "items": [
            {
                "menu_item_id": item.menu_item_id,
                "name": item.item_name,
                "qty": item.qty,
                "price": str(item.price),
                "vendor_id": item.vendor_id,
                "vendor": item.vendor.outlet_name if item.vendor else None,
            }
            for item in items
        ],
    }


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return select(Order).options(
            selectinload(Order.items).selectinload(OrderItem.vendor),
            selectinload(Order.user),
        ).order_by(Order.created_at.desc(), Order.id.desc())

    def list_for_user(self, user_id: int, limit: int = 100) -> list[dict]:
        orders = self.db.scalars(self._base_query().where(Order.user_id == user_id).limit(limit))
        return [serialize_order(order) for order in orders]

    def list_for_vendor(self, vendor_id: int, limit: int = 100) -> list[dict]:
        """Orders with at least one line from ``vendor_id``, showing only those lines."""
        has_line = select(OrderItem.order_id).where(OrderItem.vendor_id == vendor_id)
        orders = self.db.scalars(
            self._base_query().where(Order.id.in_(has_line)).limit(limit)
        )
        return [serialize_order(order, vendor_id=vendor_id) for order in orders]

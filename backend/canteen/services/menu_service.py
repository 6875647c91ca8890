"""Outlet menu management."""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from canteen.core.errors import Conflict, NotFound, ValidationError
from canteen.core.sanitize import sanitize_text
from canteen.models.menu import MenuItem
from canteen.models.order import OrderItem
from canteen.models.payment_intent import PaymentIntentItem
from canteen.models.vendor import Vendor

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class MenuItemUpdate:
    """Fields to change on a menu item; ``None`` leaves a field as it is."""

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None

    def changes(self) -> dict:
        values = {k: v for k, v in asdict(self).items() if v is not None}
        for key in ("name", "description", "category"):
            if key in values:
                values[key] = sanitize_text(values[key])
        if "price" in values:
            values["price"] = Decimal(str(values["price"])).quantize(CENT)
            if values["price"] <= 0:
                raise ValidationError("Price must be greater than zero")
        if "name" in values and not values["name"]:
            raise ValidationError("Name cannot be empty")
        return values


def serialize_menu_item(item: MenuItem, vendor: Optional[Vendor] = None) -> dict:
    vendor = vendor or item.vendor
    return {
        "id": item.id,
        "vendor_id": item.vendor_id,
        "vendor_name": vendor.outlet_name if vendor else None,
        "name": item.name,
        "description": item.description,
        "price": str(item.price),
        "category": item.category,
        "image_url": item.image_url,
        "is_available": item.is_available,
    }


class MenuService:
    def __init__(self, db: Session):
        self.db = db

    def list_available(self) -> list[dict]:
        rows = self.db.execute(
            select(MenuItem, Vendor)
            .join(Vendor, MenuItem.vendor_id == Vendor.id)
            .where(MenuItem.is_available.is_(True), Vendor.is_active.is_(True))
            .order_by(Vendor.outlet_name, MenuItem.name)
        ).all()
        return [serialize_menu_item(item, vendor) for item, vendor in rows]

    def list_for_vendor(self, vendor_id: int) -> list[dict]:
        items = self.db.scalars(
            select(MenuItem).where(MenuItem.vendor_id == vendor_id).order_by(MenuItem.name)
        )
        return [serialize_menu_item(item) for item in items]

    def _owned_item(self, item_id: int, vendor_id: int) -> MenuItem:
        item = self.db.scalar(
            select(MenuItem).where(MenuItem.id == item_id, MenuItem.vendor_id == vendor_id)
        )
        if item is None:
            raise NotFound("Menu item not found or not owned by you")
        return item

    def _duplicate_exists(self, vendor_id: int, name: str, price: Decimal, exclude_id: Optional[int] = None) -> bool:
        query = select(MenuItem.id).where(
            MenuItem.vendor_id == vendor_id,
            MenuItem.name == name,
            MenuItem.price == price,
        )
        if exclude_id is not None:
            query = query.where(MenuItem.id != exclude_id)
        return self.db.scalar(query) is not None

    def create(
        self,
        vendor_id: int,
        name: str,
        price,
        category: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> MenuItem:
        name = sanitize_text(name or "")
        if not name:
            raise ValidationError("Name is required")
        price = Decimal(str(price)).quantize(CENT)
        if price <= 0:
            raise ValidationError("Price must be greater than zero")
        if self._duplicate_exists(vendor_id, name, price):
            raise Conflict(f"A menu item named {name} with this price already exists")

        item = MenuItem(
            vendor_id=vendor_id,
            name=name,
            price=price,
            category=sanitize_text(category) or "Main Course",
            description=sanitize_text(description),
            image_url=image_url,
            is_available=True,
        )
        self.db.add(item)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict(f"A menu item named {name} with this price already exists") from e
        self.db.refresh(item)
        logger.info(f"Outlet {vendor_id} added menu item {item.id} ({name} @ {price})")
        return item

    def update(self, item_id: int, vendor_id: int, changes: MenuItemUpdate) -> MenuItem:
        """Apply the given fields in a single UPDATE statement."""
        values = changes.changes()
        if not values:
            raise ValidationError("No fields to update")
        item = self._owned_item(item_id, vendor_id)
        name = values.get("name", item.name)
        price = values.get("price", Decimal(item.price))
        if ("name" in values or "price" in values) and self._duplicate_exists(vendor_id, name, price, item_id):
            raise Conflict(f"A menu item named {name} with this price already exists")

        try:
            self.db.execute(
                update(MenuItem)
                .where(MenuItem.id == item_id, MenuItem.vendor_id == vendor_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Menu item update conflicts with an existing item") from e
        self.db.refresh(item)
        return item

    def set_availability(self, item_id: int, vendor_id: int, is_available: bool) -> MenuItem:
        if not isinstance(is_available, bool):
            raise ValidationError("is_available must be a boolean")
        item = self._owned_item(item_id, vendor_id)
        item.is_available = is_available
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete(self, item_id: int, vendor_id: int) -> bool:
        """Delete an item, or only switch it off if past orders reference it.

        Returns True when the item was soft-deleted.
        """
        item = self._owned_item(item_id, vendor_id)
        referenced = self.db.scalar(
            select(
                or_(
                    exists().where(OrderItem.menu_item_id == item_id),
                    exists().where(PaymentIntentItem.menu_item_id == item_id),
                )
            )
        )
        if referenced:
            item.is_available = False
            self.db.commit()
            logger.info(f"Menu item {item_id} is referenced by orders or payments, marked unavailable")
            return True
        self.db.delete(item)
        self.db.commit()
        logger.info(f"Menu item {item_id} deleted")
        return False

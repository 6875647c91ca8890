"""Cart validation, server-side pricing and per-outlet segregation.

Client carts may mix items from several outlets. Each outlet's portion is
settled on its own, so the cart is split into one ``VendorOrder`` per outlet.
Prices always come from the current ``MenuItem`` rows; any price the client
sent along is ignored for settlement math.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from canteen.core.config import settings
from canteen.core.errors import ItemUnavailable, ValidationError
from canteen.models.menu import MenuItem
from canteen.models.vendor import Vendor

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CartLine:
    """A cart line as submitted by the client."""

    menu_item_id: int
    qty: int
    unit_price: Optional[Decimal] = None
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None


@dataclass(frozen=True)
class PricedLine:
    """A cart line priced from the database."""

    menu_item_id: int
    name: str
    qty: int
    unit_price: Decimal
    vendor_id: int
    vendor_name: str

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.qty


@dataclass
class VendorOrder:
    """One outlet's share of a cart."""

    vendor_id: int
    vendor_name: str
    items: list[PricedLine] = field(default_factory=list)
    total: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "total": str(self.total),
            "items": [
                {
                    "menu_item_id": line.menu_item_id,
                    "name": line.name,
                    "qty": line.qty,
                    "price": str(line.unit_price),
                    "line_total": str(line.line_total),
                }
                for line in self.items
            ],
        }


def validate_cart(lines: Sequence[CartLine]) -> None:
    """Reject empty carts and out-of-range quantities before touching the DB."""
    if not lines:
        raise ValidationError("Cart is empty")
    if len(lines) > settings.max_cart_lines:
        raise ValidationError(f"Cart cannot contain more than {settings.max_cart_lines} lines")
    for line in lines:
        if not isinstance(line.qty, int) or isinstance(line.qty, bool) or line.qty < 1:
            raise ValidationError(
                f"Quantity for item {line.menu_item_id} must be at least 1",
                menu_item_id=line.menu_item_id,
            )
        if line.qty > settings.max_line_qty:
            raise ValidationError(
                f"Quantity for item {line.menu_item_id} cannot exceed {settings.max_line_qty}",
                menu_item_id=line.menu_item_id,
            )


def segregate_by_vendor(lines: Iterable[PricedLine]) -> list[VendorOrder]:
    """Group priced lines by outlet, in order of each outlet's first appearance.

    Every input line lands in exactly one group and each group's total is the
    sum of its line totals.
    """
    groups: dict[int, VendorOrder] = {}
    for line in lines:
        group = groups.get(line.vendor_id)
        if group is None:
            group = groups[line.vendor_id] = VendorOrder(line.vendor_id, line.vendor_name)
        group.items.append(line)
        group.total += line.line_total
    return list(groups.values())


def price_cart(db: Session, lines: Sequence[CartLine]) -> list[PricedLine]:
    """Re-price every line from current menu rows.

    Raises ``ItemUnavailable`` if any item is missing, switched off, or
    belongs to an inactive outlet. Either every line is priced or none is.
    """
    validate_cart(lines)
    ids = {line.menu_item_id for line in lines}
    rows = db.execute(
        select(MenuItem, Vendor)
        .join(Vendor, MenuItem.vendor_id == Vendor.id)
        .where(MenuItem.id.in_(ids))
    ).all()
    catalog = {item.id: (item, vendor) for item, vendor in rows}

    priced = []
    for line in lines:
        found = catalog.get(line.menu_item_id)
        if found is None:
            raise ItemUnavailable(line.menu_item_id, f"Menu item {line.menu_item_id} does not exist")
        item, vendor = found
        if not item.is_available or not vendor.is_active:
            raise ItemUnavailable(item.id, f"{item.name} is not available right now")
        priced.append(
            PricedLine(
                menu_item_id=item.id,
                name=item.name,
                qty=line.qty,
                unit_price=Decimal(item.price),
                vendor_id=vendor.id,
                vendor_name=vendor.outlet_name,
            )
        )
    return priced


def segregate_cart(db: Session, lines: Sequence[CartLine]) -> list[VendorOrder]:
    """Price a cart from the database and split it per outlet."""
    return segregate_by_vendor(price_cart(db, lines))


def order_total(lines: Iterable[PricedLine]) -> Decimal:
    return sum((line.line_total for line in lines), ZERO)

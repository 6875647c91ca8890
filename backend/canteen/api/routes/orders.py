"""Order placement (wallet), order history and vendor status routes."""

from typing import Optional

from fastapi import APIRouter

from canteen.api.deps import acting_vendor
from canteen.core.rbac import CurrentUser, RequireVendor
from canteen.db.session import DbSession
from canteen.schemas.orders import PlaceOrderRequest, StatusUpdateRequest, to_cart_lines
from canteen.services.order_service import OrderService, serialize_order
from canteen.services.order_status_service import OrderStatusService
from canteen.services.settlement_service import SettlementService

router = APIRouter()


@router.post("")
def place_wallet_order(body: PlaceOrderRequest, db: DbSession, current_user: CurrentUser):
    """Pay for the whole cart from the wallet."""
    result = SettlementService(db).settle_wallet_order(
        current_user.user_id, to_cart_lines(body.items)
    )
    return result.to_dict()


@router.get("")
def list_my_orders(db: DbSession, current_user: CurrentUser):
    return OrderService(db).list_for_user(current_user.user_id)


@router.get("/vendor")
def list_vendor_orders(db: DbSession, current_user: RequireVendor, vendor_id: Optional[int] = None):
    """Orders containing the caller's items, newest first."""
    vendor = acting_vendor(db, current_user, vendor_id)
    return OrderService(db).list_for_vendor(vendor.id)


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int, body: StatusUpdateRequest, db: DbSession, current_user: RequireVendor
):
    vendor = acting_vendor(db, current_user, body.vendor_id)
    order = OrderStatusService(db).set_status(order_id, body.status, vendor.id)
    return serialize_order(order, vendor_id=vendor.id)

"""Menu browsing and outlet menu management routes."""

from typing import Optional

from fastapi import APIRouter, status

from canteen.api.deps import acting_vendor
from canteen.core.rbac import RequireVendor
from canteen.db.session import DbSession
from canteen.schemas.menu import AvailabilityUpdate, MenuItemCreate, MenuItemPatch
from canteen.services.menu_service import MenuService, serialize_menu_item

router = APIRouter()


@router.get("")
def list_menu(db: DbSession):
    """Available items of active outlets, grouped by outlet name."""
    return MenuService(db).list_available()


@router.get("/vendor")
def list_vendor_menu(db: DbSession, current_user: RequireVendor, vendor_id: Optional[int] = None):
    """Every item of the caller's outlet, including unavailable ones."""
    vendor = acting_vendor(db, current_user, vendor_id)
    return MenuService(db).list_for_vendor(vendor.id)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_menu_item(body: MenuItemCreate, db: DbSession, current_user: RequireVendor):
    vendor = acting_vendor(db, current_user, body.vendor_id)
    item = MenuService(db).create(
        vendor.id,
        name=body.name,
        price=body.price,
        category=body.category,
        description=body.description,
        image_url=body.image_url,
    )
    return serialize_menu_item(item, vendor)


@router.patch("/{item_id}")
def update_menu_item(item_id: int, body: MenuItemPatch, db: DbSession, current_user: RequireVendor):
    vendor = acting_vendor(db, current_user, body.vendor_id)
    item = MenuService(db).update(item_id, vendor.id, body.to_update())
    return serialize_menu_item(item, vendor)


@router.patch("/{item_id}/availability")
def set_menu_item_availability(
    item_id: int, body: AvailabilityUpdate, db: DbSession, current_user: RequireVendor
):
    vendor = acting_vendor(db, current_user, body.vendor_id)
    item = MenuService(db).set_availability(item_id, vendor.id, body.is_available)
    return serialize_menu_item(item, vendor)


@router.delete("/{item_id}")
def delete_menu_item(item_id: int, db: DbSession, current_user: RequireVendor, vendor_id: Optional[int] = None):
    """Delete an item; items with order history are only switched off."""
    vendor = acting_vendor(db, current_user, vendor_id)
    soft = MenuService(db).delete(item_id, vendor.id)
    if soft:
        return {
            "success": True,
            "soft_delete": True,
            "message": "Item is part of past orders and was marked unavailable",
        }
    return {"success": True, "soft_delete": False, "message": "Menu item deleted"}

"""Outlet listing and outlet self-service routes."""

from typing import Optional

from fastapi import APIRouter

from canteen.api.deps import acting_vendor
from canteen.core.rbac import RequireVendor
from canteen.db.session import DbSession
from canteen.schemas.wallet import OnlineUpdateRequest, UpiUpdateRequest
from canteen.services.vendor_service import VendorService
from canteen.services.wallet_service import WalletService

router = APIRouter()


@router.get("/vendors")
def list_vendors(db: DbSession):
    return [
        {"id": v.id, "outlet_name": v.outlet_name, "is_online": v.is_online}
        for v in VendorService(db).list_active()
    ]


@router.get("/vendor/wallet")
def vendor_wallet(db: DbSession, current_user: RequireVendor, vendor_id: Optional[int] = None):
    vendor = acting_vendor(db, current_user, vendor_id)
    return WalletService(db).vendor_summary(vendor.id)


@router.post("/vendor/upi")
def set_vendor_upi(body: UpiUpdateRequest, db: DbSession, current_user: RequireVendor):
    service = VendorService(db)
    vendor = service.set_upi(acting_vendor(db, current_user, body.vendor_id), body.upi_id)
    return {"success": True, "vendor_id": vendor.id, "upi_id": vendor.upi_id}


@router.patch("/vendor/online")
def set_vendor_online(body: OnlineUpdateRequest, db: DbSession, current_user: RequireVendor):
    service = VendorService(db)
    vendor = service.set_online(acting_vendor(db, current_user, body.vendor_id), body.is_online)
    return {"success": True, "vendor_id": vendor.id, "is_online": vendor.is_online}


@router.get("/vendor/{vendor_id}/upi")
def get_vendor_upi(vendor_id: int, db: DbSession):
    vendor = VendorService(db).get(vendor_id)
    return {"vendor_id": vendor.id, "outlet_name": vendor.outlet_name, "upi_id": vendor.upi_id}

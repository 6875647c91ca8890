"""Shared route dependencies."""

from typing import Optional

from sqlalchemy.orm import Session

from canteen.core.rbac import TokenData
from canteen.models.vendor import Vendor
from canteen.services.vendor_service import VendorService


def acting_vendor(db: Session, current_user: TokenData, vendor_id: Optional[int] = None) -> Vendor:
    """The outlet the signed-in vendor user is acting for."""
    return VendorService(db).resolve_acting_vendor(current_user.user_id, vendor_id)

"""Outlet lookups, manager resolution and outlet self-service settings."""

import logging
import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from canteen.core.errors import Conflict, NotFound, PermissionDenied, ValidationError
from canteen.core.rbac import UserRole
from canteen.models.user import User
from canteen.models.vendor import UPI_ID_PATTERN, Vendor, VendorUser

logger = logging.getLogger(__name__)

_UPI_RE = re.compile(UPI_ID_PATTERN)


class VendorService:
    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> list[Vendor]:
        return list(self.db.scalars(
            select(Vendor).where(Vendor.is_active.is_(True)).order_by(Vendor.outlet_name)
        ))

    def get(self, vendor_id: int) -> Vendor:
        vendor = self.db.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFound("Outlet not found")
        return vendor

    def managed_vendor_ids(self, user_id: int) -> list[int]:
        return list(self.db.scalars(
            select(VendorUser.vendor_id).where(VendorUser.user_id == user_id).order_by(VendorUser.vendor_id)
        ))

    def resolve_acting_vendor(self, user_id: int, vendor_id: Optional[int] = None) -> Vendor:
        """Pick the outlet a vendor user is acting for.

        A user managing several outlets must name one; a user managing exactly
        one may omit it.
        """
        managed = self.managed_vendor_ids(user_id)
        if not managed:
            raise PermissionDenied("You are not linked to any outlet")
        if vendor_id is None:
            if len(managed) > 1:
                raise ValidationError("vendor_id is required when managing several outlets")
            vendor_id = managed[0]
        elif vendor_id not in managed:
            raise PermissionDenied("You do not manage this outlet")
        return self.get(vendor_id)

    def link_manager(self, vendor_id: int, user_id: int) -> VendorUser:
        """Attach a vendor account to an outlet as its manager.

        Only administrators reach this; accounts never pick their own outlet.
        """
        self.get(vendor_id)
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        if user.role != UserRole.VENDOR:
            raise ValidationError("Only vendor accounts can manage an outlet")
        existing = self.db.scalar(
            select(VendorUser).where(VendorUser.vendor_id == vendor_id, VendorUser.user_id == user_id)
        )
        if existing is not None:
            raise Conflict("User already manages this outlet")
        link = VendorUser(vendor_id=vendor_id, user_id=user_id, role="manager")
        self.db.add(link)
        self._commit()
        logger.info(f"User {user_id} now manages outlet {vendor_id}")
        return link

    def set_upi(self, vendor: Vendor, upi_id: str) -> Vendor:
        upi_id = (upi_id or "").strip()
        if not _UPI_RE.match(upi_id):
            raise ValidationError("Invalid UPI ID format (expected name@bank)")
        vendor.upi_id = upi_id
        self._commit()
        return vendor

    def set_online(self, vendor: Vendor, is_online: bool) -> Vendor:
        vendor.is_online = is_online
        self._commit()
        return vendor

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Outlet update conflicts with existing data") from e

"""Administrative routes."""

import logging

from fastapi import APIRouter, status

from canteen.core.rbac import RequireAdmin
from canteen.core.responses import list_response
from canteen.db.session import DbSession
from canteen.schemas.wallet import ManagerLinkRequest
from canteen.services.vendor_service import VendorService
from canteen.services.wallet_service import WalletService

logger = logging.getLogger("admin")

router = APIRouter()


@router.get("/reconcile")
def reconcile_balances(db: DbSession, current_user: RequireAdmin):
    """Parties whose cached wallet balance differs from their ledger."""
    drifted = WalletService(db).reconcile_all()
    return list_response([
        {
            "party": r.party,
            "party_id": r.party_id,
            "cached_balance": str(r.cached_balance),
            "ledger_balance": str(r.ledger_balance),
            "drift": str(r.drift),
        }
        for r in drifted
    ])


@router.post("/vendors/{vendor_id}/managers", status_code=status.HTTP_201_CREATED)
def add_outlet_manager(vendor_id: int, body: ManagerLinkRequest, db: DbSession, current_user: RequireAdmin):
    """Let a vendor account act for an outlet."""
    VendorService(db).link_manager(vendor_id, body.user_id)
    logger.info(f"Admin {current_user.user_id} linked user {body.user_id} to outlet {vendor_id}")
    return {"success": True, "vendor_id": vendor_id, "user_id": body.user_id}

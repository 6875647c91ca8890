"""Payer wallet routes."""

from fastapi import APIRouter

from canteen.core.rbac import CurrentUser
from canteen.db.session import DbSession
from canteen.schemas.wallet import TopUpRequest
from canteen.services.wallet_service import WalletService

router = APIRouter()


@router.get("")
def get_wallet(db: DbSession, current_user: CurrentUser):
    """Balance and the 20 most recent ledger entries."""
    return WalletService(db).user_summary(current_user.user_id)


@router.post("/add")
def add_money(body: TopUpRequest, db: DbSession, current_user: CurrentUser):
    balance = WalletService(db).top_up(current_user.user_id, body.amount)
    return {"success": True, "new_balance": str(balance)}

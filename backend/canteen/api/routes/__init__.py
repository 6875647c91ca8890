"""API routes."""

from fastapi import APIRouter

from canteen.api.routes import admin, auth, menu, notifications, orders, payments, vendors, wallet

api_router = APIRouter()

api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(menu.router, prefix="/menu", tags=["menu"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(payments.router, prefix="/payment", tags=["payments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
api_router.include_router(vendors.router, tags=["vendors"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

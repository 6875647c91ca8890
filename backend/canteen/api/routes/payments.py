"""Gateway (UPI) checkout routes.

The client splits a multi-outlet cart with ``/segregate``, then for each
outlet opens a gateway order with ``/create-order``, runs the Razorpay
checkout and posts the result to ``/verify``. Each outlet is settled on its
own; a failed payment for one outlet can be retried or skipped without
affecting the others.
"""

from fastapi import APIRouter

from canteen.core.config import settings
from canteen.core.rbac import CurrentUser
from canteen.db.session import DbSession
from canteen.schemas.orders import (
    CreatePaymentOrderRequest,
    SegregateRequest,
    VerifyPaymentRequest,
    to_cart_lines,
)
from canteen.services.cart_service import segregate_cart
from canteen.services.payment_gateway_service import PaymentGateway
from canteen.services.settlement_service import SettlementService

router = APIRouter()


@router.get("/config")
def payment_config(gateway: PaymentGateway):
    return {
        "gateway_configured": gateway.is_configured,
        "currency": settings.payment_currency,
        "key_id": gateway.key_id or None,
    }


@router.post("/segregate")
def segregate(body: SegregateRequest, db: DbSession, current_user: CurrentUser):
    """Split a cart into server-priced per-outlet sub-orders."""
    groups = segregate_cart(db, to_cart_lines(body.items))
    return {"vendor_orders": [group.to_dict() for group in groups]}


@router.post("/create-order")
def create_payment_order(
    body: CreatePaymentOrderRequest,
    db: DbSession,
    current_user: CurrentUser,
    gateway: PaymentGateway,
):
    intent = SettlementService(db, gateway).create_gateway_intent(
        current_user.user_id,
        to_cart_lines(body.items),
        amount=body.amount,
        receipt=body.receipt,
        vendor_id=body.vendor_id,
    )
    return intent.to_dict()


@router.post("/verify")
def verify_payment(
    body: VerifyPaymentRequest,
    db: DbSession,
    current_user: CurrentUser,
    gateway: PaymentGateway,
):
    result = SettlementService(db, gateway).verify_and_settle(
        current_user.user_id,
        gateway_order_id=body.gateway_order_id,
        payment_id=body.gateway_payment_id,
        signature=body.gateway_signature,
        vendor_id=body.vendor_id,
        amount=body.amount,
    )
    return result.to_dict()

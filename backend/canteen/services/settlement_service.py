"""Settlement engine: turns a priced cart into a paid order.

Two payment paths exist.

Wallet: the payer's in-app balance covers the whole cart (which may span
several outlets). The order, its lines, the token, the wallet debit and the
debit ledger entry are written in one database transaction.

Gateway: each outlet's share of a cart is paid separately through Razorpay.
``create_gateway_intent`` opens the gateway order and stores the priced
lines as an intent. ``verify_and_settle`` checks the signature and the
gateway's payment status first, then writes the order from that intent
together with its lines, the token, the outlet credit, both ledger entries
and the payer's notification in one database transaction.

Any failure inside a transaction rolls the whole unit back. Multi-outlet
checkout is a sequence of these independent settlements; a failure for one
outlet never touches another outlet's committed order.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from canteen.core.config import settings
from canteen.core.errors import (
    CanteenError,
    Conflict,
    GatewayUnavailable,
    InsufficientBalance,
    InvalidSignature,
    NotFound,
    PaymentNotSuccessful,
    PermissionDenied,
    StoreError,
    ValidationError,
)
from canteen.core.metrics import metrics
from canteen.models.ledger import TransactionDirection
from canteen.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from canteen.models.payment_intent import PaymentIntent, PaymentIntentItem, PaymentIntentStatus
from canteen.models.user import User
from canteen.services import ledger_service
from canteen.services.cart_service import (
    CartLine,
    PricedLine,
    VendorOrder,
    order_total,
    price_cart,
    segregate_by_vendor,
)
from canteen.services.notification_service import NotificationService
from canteen.services.payment_gateway_service import (
    SUCCESSFUL_PAYMENT_STATUSES,
    RazorpayGateway,
    generate_receipt,
    to_minor_units,
)
from canteen.services.token_allocator import TokenScope, allocate_token, utc_today

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class SettlementResult:
    order_id: int
    token: str
    total: Decimal
    payment_id: Optional[str] = None
    replayed: bool = False

    def to_dict(self) -> dict:
        body = {
            "success": True,
            "order_id": self.order_id,
            "token": self.token,
            "total": str(self.total),
        }
        if self.payment_id is not None:
            body["payment_id"] = self.payment_id
            body["amount"] = str(self.total)
        return body


@dataclass
class GatewayIntent:
    order_id: str
    amount: int
    currency: str
    key_id: str
    receipt: str
    vendor_id: int
    vendor_name: str
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "amount": self.amount,
            "currency": self.currency,
            "key_id": self.key_id,
            "receipt": self.receipt,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "total": str(self.total),
        }


def _client_amount(amount) -> Optional[Decimal]:
    if amount is None:
        return None
    return Decimal(str(amount)).quantize(CENT)


class SettlementService:
    def __init__(self, db: Session, gateway: Optional[RazorpayGateway] = None):
        self.db = db
        self.gateway = gateway
        self.notifications = NotificationService(db)

    # ------------------------------------------------------------------
    # Wallet path
    # ------------------------------------------------------------------

    def settle_wallet_order(
        self,
        user_id: int,
        lines: Sequence[CartLine],
        today: Optional[date] = None,
    ) -> SettlementResult:
        """Pay for a cart from the payer's wallet.

        All validation happens before the first write. The token, order,
        lines, debit and ledger entry then commit together or not at all.
        """
        priced = price_cart(self.db, lines)
        total = order_total(priced)
        if total <= 0:
            raise ValidationError("Order total must be greater than zero")
        if total > settings.max_order_total:
            raise ValidationError(f"Order total cannot exceed {settings.max_order_total}")

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        if user.wallet_balance < total:
            metrics.record_settlement("wallet", "insufficient_balance")
            raise InsufficientBalance(user.wallet_balance, total)

        scope = TokenScope(today or utc_today())
        try:
            token, counter = allocate_token(self.db, scope)
            order = self._insert_order(
                user_id=user_id,
                lines=priced,
                total=total,
                token=token,
                scope=scope,
                counter=counter,
                payment_method=PaymentMethod.WALLET,
            )
            self._debit_wallet(user_id, total)
            ledger_service.record_entry(
                self.db,
                user_id=user_id,
                amount=total,
                direction=TransactionDirection.DEBIT,
                description="Order payment",
                reference_id=token,
            )
            self.db.commit()
        except CanteenError:
            self.db.rollback()
            metrics.record_settlement("wallet", "rejected")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            metrics.record_settlement("wallet", "store_error")
            logger.error(f"Wallet settlement for user {user_id} rolled back: {e}")
            raise StoreError("Order could not be saved, please retry") from e
        except Exception:
            self.db.rollback()
            metrics.record_settlement("wallet", "error")
            raise

        metrics.record_settlement("wallet", "settled")
        logger.info(f"Wallet order {token} (id={order.id}) settled for user {user_id}: {total}")
        return SettlementResult(order_id=order.id, token=token, total=total)

    def _debit_wallet(self, user_id: int, total: Decimal) -> None:
        # Guarded relative update; a concurrent order may have drained the wallet
        if not ledger_service.debit_user_wallet(self.db, user_id, total):
            balance = self.db.scalar(select(User.wallet_balance).where(User.id == user_id))
            raise InsufficientBalance(balance, total)

    def _insert_order(
        self,
        *,
        user_id: int,
        lines: Sequence[PricedLine],
        total: Decimal,
        token: str,
        scope: TokenScope,
        counter: int,
        payment_method: PaymentMethod,
        vendor_id: Optional[int] = None,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> Order:
        order = Order(
            user_id=user_id,
            vendor_id=vendor_id,
            token=token,
            token_scope=scope.key,
            order_date=scope.order_date,
            order_of_day=counter,
            total_amount=total,
            status=OrderStatus.PENDING,
            payment_method=payment_method,
            payment_status=PaymentStatus.COMPLETED,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
        )
        for line in lines:
            order.items.append(
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    vendor_id=line.vendor_id,
                    item_name=line.name,
                    qty=line.qty,
                    price=line.unit_price,
                )
            )
        self.db.add(order)
        self.db.flush()
        return order

    # ------------------------------------------------------------------
    # Gateway path
    # ------------------------------------------------------------------

    def _require_gateway(self) -> RazorpayGateway:
        if self.gateway is None:
            raise GatewayUnavailable("Payment gateway is not configured")
        return self.gateway

    def _single_vendor_order(
        self,
        lines: Sequence[CartLine],
        vendor_id: Optional[int] = None,
    ) -> VendorOrder:
        groups = segregate_by_vendor(price_cart(self.db, lines))
        if len(groups) != 1:
            raise ValidationError("A payment can only cover items from one outlet")
        vendor_order = groups[0]
        if vendor_id is not None and vendor_order.vendor_id != vendor_id:
            raise ValidationError("Items do not belong to the selected outlet")
        if vendor_order.total <= 0:
            raise ValidationError("Order total must be greater than zero")
        if vendor_order.total > settings.max_order_total:
            raise ValidationError(f"Order total cannot exceed {settings.max_order_total}")
        return vendor_order

    def create_gateway_intent(
        self,
        user_id: int,
        lines: Sequence[CartLine],
        amount=None,
        receipt: Optional[str] = None,
        vendor_id: Optional[int] = None,
    ) -> GatewayIntent:
        """Open a gateway order for one outlet's share of a cart.

        The priced lines are stored as a ``PaymentIntent`` keyed by the
        gateway order id. Verification settles from that snapshot, never
        from the menu as it is at verification time. An abandoned payment
        leaves only an open intent behind: no order and no balance change.
        """
        gateway = self._require_gateway()
        vendor_order = self._single_vendor_order(lines, vendor_id)

        client_amount = _client_amount(amount)
        if client_amount is not None and client_amount != vendor_order.total:
            raise ValidationError(
                "Amount does not match current menu prices",
                expected=str(vendor_order.total),
            )

        receipt = receipt or generate_receipt(vendor_order.vendor_id)
        gateway_order = gateway.create_order(
            to_minor_units(vendor_order.total),
            receipt,
            notes={
                "vendor_id": str(vendor_order.vendor_id),
                "vendor_name": vendor_order.vendor_name,
            },
        )

        intent = PaymentIntent(
            gateway_order_id=gateway_order["id"],
            user_id=user_id,
            vendor_id=vendor_order.vendor_id,
            vendor_name=vendor_order.vendor_name,
            receipt=receipt,
            amount=vendor_order.total,
        )
        for line in vendor_order.items:
            intent.items.append(
                PaymentIntentItem(
                    menu_item_id=line.menu_item_id,
                    item_name=line.name,
                    qty=line.qty,
                    price=line.unit_price,
                )
            )
        try:
            self.db.add(intent)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not store intent for gateway order {gateway_order['id']}: {e}")
            raise StoreError("Payment could not be started, please retry") from e

        logger.info(
            f"Gateway order {gateway_order['id']} opened for user {user_id}, "
            f"outlet {vendor_order.vendor_id}: {vendor_order.total}"
        )
        return GatewayIntent(
            order_id=gateway_order["id"],
            amount=int(gateway_order.get("amount", to_minor_units(vendor_order.total))),
            currency=gateway_order.get("currency", gateway.currency),
            key_id=gateway.key_id,
            receipt=receipt,
            vendor_id=vendor_order.vendor_id,
            vendor_name=vendor_order.vendor_name,
            total=vendor_order.total,
        )

    def _find_settled(self, payment_id: str) -> Optional[Order]:
        return self.db.scalar(select(Order).where(Order.gateway_payment_id == payment_id))

    def _replay(self, order: Order, user_id: int) -> SettlementResult:
        if order.user_id != user_id:
            raise PermissionDenied("Payment belongs to another account")
        logger.info(f"Payment {order.gateway_payment_id} already settled as {order.token}")
        metrics.record_settlement("gateway", "replayed")
        return SettlementResult(
            order_id=order.id,
            token=order.token,
            total=Decimal(order.total_amount),
            payment_id=order.gateway_payment_id,
            replayed=True,
        )

    def _open_intent(self, gateway_order_id: str, user_id: int) -> PaymentIntent:
        intent = self.db.scalar(
            select(PaymentIntent).where(PaymentIntent.gateway_order_id == gateway_order_id)
        )
        if intent is None:
            raise NotFound("Payment order not found")
        if intent.user_id != user_id:
            raise PermissionDenied("Payment belongs to another account")
        if intent.status != PaymentIntentStatus.OPEN:
            raise Conflict("Payment order is already settled")
        return intent

    def _mark_settled(self, intent_id: int, order_id: int) -> None:
        result = self.db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.id == intent_id,
                PaymentIntent.status == PaymentIntentStatus.OPEN,
            )
            .values(status=PaymentIntentStatus.SETTLED, order_id=order_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict("Payment order is already settled")

    def verify_and_settle(
        self,
        user_id: int,
        gateway_order_id: str,
        payment_id: str,
        signature: str,
        vendor_id: Optional[int] = None,
        amount=None,
        today: Optional[date] = None,
    ) -> SettlementResult:
        """Verify a completed gateway payment and settle it as one order.

        The order is built from the intent stored by ``create_gateway_intent``
        with the prices the payer was charged. Re-submitting an already
        settled payment returns the original order.
        """
        gateway = self._require_gateway()
        if not (gateway_order_id and payment_id and signature):
            raise ValidationError("gateway_order_id, gateway_payment_id and gateway_signature are required")

        if not gateway.verify_signature(gateway_order_id, payment_id, signature):
            logger.warning(f"Rejected payment {payment_id}: signature mismatch for order {gateway_order_id}")
            metrics.record_settlement("gateway", "invalid_signature")
            raise InvalidSignature("Payment signature verification failed")

        existing = self._find_settled(payment_id)
        if existing is not None:
            return self._replay(existing, user_id)

        intent = self._open_intent(gateway_order_id, user_id)
        total = Decimal(intent.amount).quantize(CENT)
        if vendor_id is not None and vendor_id != intent.vendor_id:
            raise ValidationError("Payment order belongs to another outlet")
        client_amount = _client_amount(amount)
        if client_amount is not None and client_amount != total:
            raise ValidationError("Amount does not match the payment order", expected=str(total))

        payment = gateway.fetch_payment(payment_id)
        status = payment.get("status")
        if status not in SUCCESSFUL_PAYMENT_STATUSES:
            logger.warning(f"Rejected payment {payment_id}: gateway status {status!r}")
            metrics.record_settlement("gateway", "not_successful")
            raise PaymentNotSuccessful(f"Payment status is {status}")
        if payment.get("order_id") not in (None, gateway_order_id):
            metrics.record_settlement("gateway", "not_successful")
            raise PaymentNotSuccessful("Payment does not belong to this order")
        if int(payment.get("amount", -1)) != to_minor_units(total):
            logger.warning(
                f"Rejected payment {payment_id}: paid {payment.get('amount')} paise, "
                f"expected {to_minor_units(total)}"
            )
            metrics.record_settlement("gateway", "amount_mismatch")
            raise PaymentNotSuccessful("Paid amount does not match the order total")

        intent_id = intent.id
        outlet_id = intent.vendor_id
        outlet_name = intent.vendor_name
        lines = [
            PricedLine(
                menu_item_id=item.menu_item_id,
                name=item.item_name,
                qty=item.qty,
                unit_price=Decimal(item.price),
                vendor_id=outlet_id,
                vendor_name=outlet_name,
            )
            for item in intent.items
        ]

        scope = TokenScope(today or utc_today(), outlet_id)
        try:
            token, counter = allocate_token(self.db, scope)
            order = self._insert_order(
                user_id=user_id,
                lines=lines,
                total=total,
                token=token,
                scope=scope,
                counter=counter,
                payment_method=PaymentMethod.RAZORPAY,
                vendor_id=outlet_id,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=payment_id,
            )
            self._mark_settled(intent_id, order.id)
            self._credit_vendor(outlet_id, total)
            ledger_service.record_entry(
                self.db,
                vendor_id=outlet_id,
                amount=total,
                direction=TransactionDirection.CREDIT,
                description=f"Order {token} payment",
                reference_id=token,
                payment_id=payment_id,
            )
            # The payer paid over UPI, not from the wallet
            ledger_service.record_entry(
                self.db,
                user_id=user_id,
                amount=total,
                direction=TransactionDirection.DEBIT,
                description=f"UPI payment to {outlet_name}",
                reference_id=token,
                payment_id=payment_id,
                affects_balance=False,
            )
            self.notifications.push(
                user_id,
                title="Payment Successful",
                message=(
                    f"Your payment of ₹{total} to {outlet_name} was successful. "
                    f"Your order token is {token}."
                ),
                type="payment",
                reference_id=token,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = self._find_settled(payment_id)
            if existing is not None:
                return self._replay(existing, user_id)
            metrics.record_settlement("gateway", "store_error")
            logger.error(f"Gateway settlement for payment {payment_id} rolled back: {e}")
            raise StoreError("Order could not be saved, please retry") from e
        except CanteenError:
            self.db.rollback()
            # A concurrent verify of the same payment may have won the intent
            existing = self._find_settled(payment_id)
            if existing is not None:
                return self._replay(existing, user_id)
            metrics.record_settlement("gateway", "rejected")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            metrics.record_settlement("gateway", "store_error")
            logger.error(f"Gateway settlement for payment {payment_id} rolled back: {e}")
            raise StoreError("Order could not be saved, please retry") from e
        except Exception:
            self.db.rollback()
            metrics.record_settlement("gateway", "error")
            raise

        metrics.record_settlement("gateway", "settled")
        logger.info(
            f"Gateway order {token} (id={order.id}) settled for user {user_id}, "
            f"outlet {outlet_id}, payment {payment_id}: {total}"
        )
        return SettlementResult(order_id=order.id, token=token, total=total, payment_id=payment_id)

    def _credit_vendor(self, vendor_id: int, total: Decimal) -> None:
        if not ledger_service.credit_vendor_wallet(self.db, vendor_id, total):
            raise NotFound("Outlet not found")

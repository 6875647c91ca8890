"""Tests for per-outlet gateway checkout: create-order and verify."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from canteen.core.errors import (
    Conflict,
    GatewayUnavailable,
    InvalidSignature,
    NotFound,
    PaymentNotSuccessful,
    PermissionDenied,
    ValidationError,
)
from canteen.models import (
    MenuItem,
    Notification,
    Order,
    OrderItem,
    OrderStatus,
    PaymentIntent,
    PaymentIntentStatus,
    PaymentMethod,
    PaymentStatus,
    Transaction,
    TransactionDirection,
    User,
    Vendor,
)
from canteen.services.cart_service import CartLine
from canteen.services.payment_gateway_service import RazorpayGateway, compute_signature, get_gateway
from canteen.services.settlement_service import SettlementService
from canteen.services.wallet_service import WalletService
from conftest import GATEWAY_SECRET, headers_for, make_user

DAY = date(2025, 9, 5)


def _signed(order_id="order_test_1", payment_id="pay_test_1"):
    return {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": compute_signature(GATEWAY_SECRET, order_id, payment_id),
    }


def _captured(razorpay_client, amount_paise, order_id="order_test_1", status="captured", payment_id="pay_test_1"):
    razorpay_client.payment.fetch.return_value = {
        "id": payment_id,
        "status": status,
        "amount": amount_paise,
        "order_id": order_id,
    }


def _open_payment(client, headers, items, **extra):
    res = client.post("/api/payment/create-order", headers=headers, json={"items": items, **extra})
    assert res.status_code == 200
    return res.json()["order_id"]


class TestCreateOrder:
    def test_creates_gateway_order_in_paise(self, client, customer_headers, menu, cafe, razorpay_client):
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "amount": "147.00",
            "vendor_id": cafe.id,
            "items": [{"id": menu["dosa"].id, "quantity": 2}, {"id": menu["roti"].id, "quantity": 1}],
        })

        assert res.status_code == 200
        body = res.json()
        assert body["order_id"] == "order_test_1"
        assert body["amount"] == 14700
        assert body["currency"] == "INR"
        assert body["key_id"] == "rzp_test_canteen"
        assert body["vendor_id"] == cafe.id
        assert body["receipt"].startswith(f"rcpt_{cafe.id}_")

        sent = razorpay_client.order.create.call_args[0][0]
        assert sent["amount"] == 14700
        assert sent["payment_capture"] == 1
        assert sent["notes"]["vendor_name"] == "Cafe 2004"

    def test_stores_priced_lines_but_no_order(self, client, customer_headers, customer, menu, cafe, db_session):
        _open_payment(client, customer_headers, [
            {"id": menu["dosa"].id, "quantity": 2},
            {"id": menu["roti"].id, "quantity": 1},
        ])

        assert db_session.scalar(select(func.count()).select_from(Order)) == 0
        intent = db_session.scalar(select(PaymentIntent))
        assert intent.gateway_order_id == "order_test_1"
        assert intent.user_id == customer.id
        assert intent.vendor_id == cafe.id
        assert intent.amount == Decimal("147.00")
        assert intent.status == PaymentIntentStatus.OPEN
        assert [(item.item_name, item.qty, item.price) for item in intent.items] == [
            ("Masala Dosa", 2, Decimal("70.00")),
            ("Tava Roti", 1, Decimal("7.00")),
        ]

    def test_mixed_outlets_rejected(self, client, customer_headers, menu, razorpay_client):
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "items": [{"id": menu["dosa"].id, "quantity": 1}, {"id": menu["tea"].id, "quantity": 1}],
        })
        assert res.status_code == 400
        assert res.json()["error"] == "validation_error"
        razorpay_client.order.create.assert_not_called()

    def test_stale_client_amount_rejected(self, client, customer_headers, menu, razorpay_client):
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "amount": 60,
            "items": [{"id": menu["dosa"].id, "quantity": 1}],
        })
        assert res.status_code == 400
        assert res.json()["expected"] == "70.00"
        razorpay_client.order.create.assert_not_called()

    def test_items_from_other_outlet_rejected(self, client, customer_headers, menu, nescafe):
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "vendor_id": nescafe.id,
            "items": [{"id": menu["dosa"].id, "quantity": 1}],
        })
        assert res.status_code == 400

    def test_gateway_failure_is_503(self, client, customer_headers, menu, razorpay_client, db_session):
        razorpay_client.order.create.side_effect = RuntimeError("connection reset")
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "items": [{"id": menu["dosa"].id, "quantity": 1}],
        })
        assert res.status_code == 503
        assert res.json()["error"] == "gateway_unavailable"
        assert db_session.scalar(select(func.count()).select_from(PaymentIntent)) == 0

    def test_unconfigured_gateway_is_503(self, client, customer_headers, menu):
        from canteen.main import app

        app.dependency_overrides[get_gateway] = lambda: RazorpayGateway(key_id="", key_secret="")
        res = client.post("/api/payment/create-order", headers=customer_headers, json={
            "items": [{"id": menu["dosa"].id, "quantity": 1}],
        })
        assert res.status_code == 503

        config = client.get("/api/payment/config").json()
        assert config["gateway_configured"] is False


class TestVerify:
    def test_settles_one_outlet(self, client, customer_headers, customer, menu, cafe, razorpay_client, db_session):
        _open_payment(client, customer_headers, [
            {"id": menu["dosa"].id, "quantity": 1},
            {"id": menu["biryani"].id, "quantity": 1},
        ])
        _captured(razorpay_client, 16000)
        res = client.post("/api/payment/verify", headers=customer_headers, json={
            **_signed(),
            "vendor_id": cafe.id,
            "amount": "160.00",
        })

        assert res.status_code == 200
        body = res.json()
        assert body["success"] is True
        assert body["payment_id"] == "pay_test_1"
        assert body["amount"] == "160.00"
        assert body["token"].endswith("_001")
        razorpay_client.payment.fetch.assert_called_once_with("pay_test_1")

        order = db_session.get(Order, body["order_id"])
        assert order.payment_method == PaymentMethod.RAZORPAY
        assert order.payment_status == PaymentStatus.COMPLETED
        assert order.status == OrderStatus.PENDING
        assert order.vendor_id == cafe.id
        assert order.gateway_order_id == "order_test_1"
        assert [item.item_name for item in order.items] == ["Masala Dosa", "Veg Biryani"]

        intent = db_session.scalar(select(PaymentIntent))
        db_session.refresh(intent)
        assert intent.status == PaymentIntentStatus.SETTLED
        assert intent.order_id == order.id

        vendor_balance = db_session.scalar(select(Vendor.wallet_balance).where(Vendor.id == cafe.id))
        assert vendor_balance == Decimal("160.00")
        customer_balance = db_session.scalar(select(User.wallet_balance).where(User.id == customer.id))
        assert customer_balance == Decimal("500.00")

        entries = db_session.scalars(
            select(Transaction).where(Transaction.payment_id == "pay_test_1")
        ).all()
        assert len(entries) == 2
        credit = next(e for e in entries if e.vendor_id == cafe.id)
        debit = next(e for e in entries if e.user_id == customer.id)
        assert credit.direction == TransactionDirection.CREDIT
        assert credit.affects_balance is True
        assert debit.direction == TransactionDirection.DEBIT
        assert debit.affects_balance is False
        assert debit.description == "UPI payment to Cafe 2004"

        note = db_session.scalar(select(Notification).where(Notification.user_id == customer.id))
        assert note.title == "Payment Successful"
        assert note.type == "payment"
        assert body["token"] in note.message

        wallet = WalletService(db_session)
        assert wallet.reconcile_user(customer.id).consistent
        assert wallet.reconcile_vendor(cafe.id).consistent

    def test_price_raised_after_create_order_settles_at_paid_price(
        self, client, customer_headers, cafe_headers, menu, cafe, razorpay_client, db_session
    ):
        dosa_id = menu["dosa"].id
        _open_payment(client, customer_headers, [{"id": dosa_id, "quantity": 1}], amount="70.00")
        _captured(razorpay_client, 7000)

        edit = client.patch(f"/api/menu/{dosa_id}", headers=cafe_headers, json={"price": 80})
        assert edit.status_code == 200

        res = client.post("/api/payment/verify", headers=customer_headers, json={
            **_signed(),
            "amount": "70.00",
        })

        assert res.status_code == 200
        assert res.json()["amount"] == "70.00"
        line = db_session.scalar(select(OrderItem).where(OrderItem.order_id == res.json()["order_id"]))
        assert line.price == Decimal("70.00")
        vendor_balance = db_session.scalar(select(Vendor.wallet_balance).where(Vendor.id == cafe.id))
        assert vendor_balance == Decimal("70.00")

    def test_item_switched_off_after_create_order_still_settles(
        self, client, customer_headers, cafe_headers, menu, razorpay_client, db_session
    ):
        dosa_id = menu["dosa"].id
        _open_payment(client, customer_headers, [{"id": dosa_id, "quantity": 2}])
        _captured(razorpay_client, 14000)

        client.patch(f"/api/menu/{dosa_id}/availability", headers=cafe_headers, json={"is_available": False})
        # The open payment keeps the row alive, so deleting only switches it off
        deleted = client.delete(f"/api/menu/{dosa_id}", headers=cafe_headers)
        assert deleted.json()["soft_delete"] is True

        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())

        assert res.status_code == 200
        assert res.json()["amount"] == "140.00"
        assert db_session.get(MenuItem, dosa_id) is not None

    def test_cart_items_in_callback_are_ignored(self, client, customer_headers, menu, razorpay_client):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000)
        res = client.post("/api/payment/verify", headers=customer_headers, json={
            **_signed(),
            "items": [{"id": menu["biryani"].id, "quantity": 3}],
        })
        assert res.status_code == 200
        assert res.json()["amount"] == "70.00"

    def test_unknown_gateway_order_is_404(self, client, customer_headers, menu, razorpay_client, db_session):
        _captured(razorpay_client, 7000)
        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())

        assert res.status_code == 404
        razorpay_client.payment.fetch.assert_not_called()
        assert db_session.scalar(select(func.count()).select_from(Order)) == 0

    def test_payment_opened_by_another_account_is_403(self, client, customer_headers, menu, razorpay_client, db_session):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000)
        other = make_user(db_session, "kiran@campus.edu")

        res = client.post("/api/payment/verify", headers=headers_for(other), json=_signed())

        assert res.status_code == 403
        assert db_session.scalar(select(func.count()).select_from(Order)) == 0

    def test_client_amount_must_match_payment_order(self, client, customer_headers, menu, razorpay_client):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000)
        res = client.post("/api/payment/verify", headers=customer_headers, json={**_signed(), "amount": "80.00"})

        assert res.status_code == 400
        assert res.json()["expected"] == "70.00"
        razorpay_client.payment.fetch.assert_not_called()

    def test_tampered_payment_id_rejected_before_fetch(self, client, customer_headers, menu, razorpay_client, db_session):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        payload = _signed()
        payload["razorpay_payment_id"] = "pay_test_2"
        res = client.post("/api/payment/verify", headers=customer_headers, json=payload)

        assert res.status_code == 400
        assert res.json()["error"] == "invalid_signature"
        razorpay_client.payment.fetch.assert_not_called()
        assert db_session.scalar(select(func.count()).select_from(Order)) == 0

    @pytest.mark.parametrize("status", ["failed", "created", "refunded"])
    def test_unsuccessful_payment_rejected(self, client, customer_headers, menu, razorpay_client, db_session, status):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000, status=status)
        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())

        assert res.status_code == 400
        assert res.json()["error"] == "payment_not_successful"
        assert db_session.scalar(select(func.count()).select_from(Order)) == 0

    def test_authorized_payment_accepted(self, client, customer_headers, menu, razorpay_client):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000, status="authorized")
        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())
        assert res.status_code == 200

    def test_underpaid_payment_rejected(self, client, customer_headers, menu, razorpay_client, db_session):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 6900)
        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())
        assert res.status_code == 400
        assert db_session.scalar(select(func.count()).select_from(Order)) == 0

    def test_payment_for_other_gateway_order_rejected(self, client, customer_headers, menu, razorpay_client):
        _open_payment(client, customer_headers, [{"id": menu["dosa"].id, "quantity": 1}])
        _captured(razorpay_client, 7000, order_id="order_someone_else")
        res = client.post("/api/payment/verify", headers=customer_headers, json=_signed())
        assert res.status_code == 400
        assert res.json()["error"] == "payment_not_successful"

    def test_missing_callback_fields_is_422(self, client, customer_headers, menu):
        res = client.post("/api/payment/verify", headers=customer_headers, json={
            "razorpay_order_id": "order_test_1",
        })
        assert res.status_code == 422


class TestVerifyService:
    def _service(self, db_session, gateway):
        return SettlementService(db_session, gateway)

    def test_replay_returns_original_order(self, db_session, gateway, razorpay_client, customer, menu):
        service = self._service(db_session, gateway)
        service.create_gateway_intent(customer.id, [CartLine(menu["coffee"].id, 1)])
        _captured(razorpay_client, 2500)
        signature = compute_signature(GATEWAY_SECRET, "order_test_1", "pay_test_1")

        first = service.verify_and_settle(customer.id, "order_test_1", "pay_test_1", signature, today=DAY)
        second = service.verify_and_settle(customer.id, "order_test_1", "pay_test_1", signature, today=DAY)

        assert second.replayed
        assert second.order_id == first.order_id
        assert second.token == first.token
        assert db_session.scalar(select(func.count()).select_from(Order)) == 1
        vendor_balance = db_session.scalar(
            select(Vendor.wallet_balance).where(Vendor.id == menu["coffee"].vendor_id)
        )
        assert vendor_balance == Decimal("25.00")

    def test_replay_by_another_account_is_denied(self, db_session, gateway, razorpay_client, customer, menu):
        service = self._service(db_session, gateway)
        service.create_gateway_intent(customer.id, [CartLine(menu["coffee"].id, 1)])
        _captured(razorpay_client, 2500)
        signature = compute_signature(GATEWAY_SECRET, "order_test_1", "pay_test_1")
        service.verify_and_settle(customer.id, "order_test_1", "pay_test_1", signature)

        other = make_user(db_session, "kiran@campus.edu")
        with pytest.raises(PermissionDenied):
            service.verify_and_settle(other.id, "order_test_1", "pay_test_1", signature)

    def test_second_payment_for_settled_order_is_conflict(self, db_session, gateway, razorpay_client, customer, menu):
        service = self._service(db_session, gateway)
        service.create_gateway_intent(customer.id, [CartLine(menu["coffee"].id, 1)])
        _captured(razorpay_client, 2500)
        service.verify_and_settle(
            customer.id, "order_test_1", "pay_test_1",
            compute_signature(GATEWAY_SECRET, "order_test_1", "pay_test_1"),
        )

        _captured(razorpay_client, 2500, payment_id="pay_test_2")
        with pytest.raises(Conflict):
            service.verify_and_settle(
                customer.id, "order_test_1", "pay_test_2",
                compute_signature(GATEWAY_SECRET, "order_test_1", "pay_test_2"),
            )
        assert db_session.scalar(select(func.count()).select_from(Order)) == 1

    def test_unknown_gateway_order(self, db_session, gateway, customer):
        with pytest.raises(NotFound):
            self._service(db_session, gateway).verify_and_settle(
                customer.id, "order_missing", "pay_test_1",
                compute_signature(GATEWAY_SECRET, "order_missing", "pay_test_1"),
            )

    def test_signature_checked_before_anything_else(self, db_session, gateway, razorpay_client, customer, menu):
        with pytest.raises(InvalidSignature):
            self._service(db_session, gateway).verify_and_settle(
                customer.id, "order_test_1", "pay_test_1", "0" * 64
            )
        razorpay_client.payment.fetch.assert_not_called()

    def test_requires_all_callback_fields(self, db_session, gateway, customer, menu):
        with pytest.raises(ValidationError):
            self._service(db_session, gateway).verify_and_settle(customer.id, "order_test_1", "", "sig")

    def test_without_gateway_is_unavailable(self, db_session, customer, menu):
        service = SettlementService(db_session)
        with pytest.raises(GatewayUnavailable):
            service.create_gateway_intent(customer.id, [CartLine(menu["coffee"].id, 1)])
        with pytest.raises(GatewayUnavailable):
            service.verify_and_settle(customer.id, "order_test_1", "pay_test_1", "sig")

    def test_outlets_settle_independently(self, db_session, gateway, razorpay_client, customer, menu, cafe, nescafe):
        service = self._service(db_session, gateway)
        cafe_intent = service.create_gateway_intent(customer.id, [CartLine(menu["dosa"].id, 1)])
        nescafe_intent = service.create_gateway_intent(customer.id, [CartLine(menu["tea"].id, 1)])
        assert (cafe_intent.order_id, nescafe_intent.order_id) == ("order_test_1", "order_test_2")

        _captured(razorpay_client, 7000, order_id="order_test_1", payment_id="pay_cafe")
        cafe_result = service.verify_and_settle(
            customer.id, "order_test_1", "pay_cafe",
            compute_signature(GATEWAY_SECRET, "order_test_1", "pay_cafe"), today=DAY,
        )

        _captured(razorpay_client, 1500, order_id="order_test_2", status="failed", payment_id="pay_nescafe")
        with pytest.raises(PaymentNotSuccessful):
            service.verify_and_settle(
                customer.id, "order_test_2", "pay_nescafe",
                compute_signature(GATEWAY_SECRET, "order_test_2", "pay_nescafe"), today=DAY,
            )

        assert db_session.get(Order, cafe_result.order_id) is not None
        assert db_session.scalar(select(func.count()).select_from(Order)) == 1

        _captured(razorpay_client, 1500, order_id="order_test_2", payment_id="pay_nescafe")
        nescafe_result = service.verify_and_settle(
            customer.id, "order_test_2", "pay_nescafe",
            compute_signature(GATEWAY_SECRET, "order_test_2", "pay_nescafe"), today=DAY,
        )

        # Each outlet numbers its own gateway orders
        assert cafe_result.token == "05_09_2025_001"
        assert nescafe_result.token == "05_09_2025_001"
        balances = dict(db_session.execute(select(Vendor.id, Vendor.wallet_balance)).all())
        assert balances[cafe.id] == Decimal("70.00")
        assert balances[nescafe.id] == Decimal("15.00")

"""Tests for cart pricing and per-outlet segregation."""

from decimal import Decimal

import pytest

from canteen.core.errors import ItemUnavailable, ValidationError
from canteen.services.cart_service import (
    CartLine,
    PricedLine,
    price_cart,
    segregate_by_vendor,
    segregate_cart,
)


def _line(vendor_id, item_id, qty, price, vendor_name=None):
    return PricedLine(
        menu_item_id=item_id,
        name=f"item-{item_id}",
        qty=qty,
        unit_price=Decimal(price),
        vendor_id=vendor_id,
        vendor_name=vendor_name or f"vendor-{vendor_id}",
    )


class TestSegregateByVendor:
    def test_groups_lines_per_vendor_with_totals(self):
        a = _line(1, 101, 2, "10")
        b = _line(2, 201, 1, "5")
        c = _line(1, 102, 1, "3")

        groups = segregate_by_vendor([a, b, c])

        assert [g.vendor_id for g in groups] == [1, 2]
        assert groups[0].items == [a, c]
        assert groups[0].total == Decimal("23")
        assert groups[1].items == [b]
        assert groups[1].total == Decimal("5")

    def test_every_line_lands_in_exactly_one_group(self):
        lines = [_line(v, i, 1, "1") for i, v in enumerate([3, 1, 3, 2, 1, 3])]
        groups = segregate_by_vendor(lines)

        flattened = [line for g in groups for line in g.items]
        assert sorted(flattened, key=lambda l: l.menu_item_id) == lines
        assert len(groups) == 3

    def test_group_order_follows_first_occurrence(self):
        groups = segregate_by_vendor([_line(9, 1, 1, "1"), _line(4, 2, 1, "1"), _line(9, 3, 1, "1")])
        assert [g.vendor_id for g in groups] == [9, 4]

    def test_empty_input(self):
        assert segregate_by_vendor([]) == []


class TestPriceCart:
    def test_prices_come_from_menu_not_client(self, db_session, menu):
        dosa = menu["dosa"]
        priced = price_cart(db_session, [CartLine(dosa.id, 2, unit_price=Decimal("1.00"))])

        assert priced[0].unit_price == Decimal("70.00")
        assert priced[0].line_total == Decimal("140.00")
        assert priced[0].vendor_name == "Cafe 2004"

    def test_mixed_cart_is_split(self, db_session, menu):
        groups = segregate_cart(db_session, [
            CartLine(menu["dosa"].id, 1),
            CartLine(menu["coffee"].id, 2),
            CartLine(menu["roti"].id, 3),
        ])

        assert [g.vendor_name for g in groups] == ["Cafe 2004", "Nescafe"]
        assert groups[0].total == Decimal("91.00")
        assert groups[1].total == Decimal("50.00")

    def test_missing_item_fails_whole_cart(self, db_session, menu):
        with pytest.raises(ItemUnavailable) as exc:
            price_cart(db_session, [CartLine(menu["dosa"].id, 1), CartLine(99999, 1)])
        assert exc.value.menu_item_id == 99999

    def test_unavailable_item_fails(self, db_session, menu):
        menu["tea"].is_available = False
        db_session.commit()

        with pytest.raises(ItemUnavailable):
            price_cart(db_session, [CartLine(menu["tea"].id, 1)])

    def test_inactive_outlet_fails(self, db_session, menu, nescafe):
        nescafe.is_active = False
        db_session.commit()

        with pytest.raises(ItemUnavailable):
            price_cart(db_session, [CartLine(menu["coffee"].id, 1)])

    def test_empty_cart_rejected(self, db_session):
        with pytest.raises(ValidationError):
            price_cart(db_session, [])

    @pytest.mark.parametrize("qty", [0, -2])
    def test_non_positive_quantity_rejected(self, db_session, menu, qty):
        with pytest.raises(ValidationError):
            price_cart(db_session, [CartLine(menu["dosa"].id, qty)])


class TestSegregateEndpoint:
    def test_returns_server_priced_groups(self, client, customer_headers, menu):
        res = client.post("/api/payment/segregate", headers=customer_headers, json={
            "items": [
                {"menu_item_id": menu["coffee"].id, "qty": 1},
                {"menu_item_id": menu["biryani"].id, "qty": 1, "price": "1.00"},
            ],
        })

        assert res.status_code == 200
        groups = res.json()["vendor_orders"]
        assert [g["vendor_name"] for g in groups] == ["Nescafe", "Cafe 2004"]
        assert groups[1]["total"] == "90.00"

    def test_requires_auth(self, client, menu):
        res = client.post("/api/payment/segregate", json={"items": []})
        assert res.status_code == 401

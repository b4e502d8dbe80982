"""
Tests for carrental/services/order.py -- order persistence and status machine.

Covers:
- create_order validation (totals, days, lines)
- Status transitions (allowed, rejected, terminal states)
- Compare-and-set against a stale expected status
- Vehicle availability side effects
- Per-user listing (ordering, isolation)
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from carrental.enums.errors import ErrorKind
from carrental.enums.order import OrderStatus
from carrental.extensions import db
from carrental.models.order import Order
from carrental.models.vehicle import Vehicle
from carrental.services.order import OrderService


def _order_input(**overrides):
    data = {
        "user_id": "user-1",
        "start_date": date(2025, 7, 1),
        "end_date": date(2025, 7, 4),
        "total_days": 3,
        "daily_rate": Decimal("100"),
        "subtotal": Decimal("300"),
        "tax": Decimal("45"),
        "service_fee": Decimal("15"),
        "total_amount": Decimal("360"),
        "customer_name": "Abebe Kebede",
        "customer_email": "abebe@example.com",
        "customer_phone": "0912345678",
        "items": [
            {
                "vehicle_id": "veh-1",
                "vehicle_snapshot": {"id": "veh-1", "name": "Toyota Corolla"},
                "daily_rate": Decimal("100"),
                "rental_days": 3,
                "line_total": Decimal("300"),
            }
        ],
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# create_order
# ---------------------------------------------------------------------------

class TestCreateOrder:
    def test_creates_pending_order_with_items(self, app):
        result = OrderService.create_order(_order_input())
        assert result.ok
        order = result.value
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_method == "chapa"
        assert order.vehicle_ids == ["veh-1"]
        assert order.to_dict()["items"][0]["vehicle_snapshot"]["name"] == "Toyota Corolla"

    def test_total_must_add_up(self, app):
        result = OrderService.create_order(_order_input(total_amount=Decimal("359")))
        assert result.kind == ErrorKind.VALIDATION
        assert Order.query.count() == 0

    def test_negative_amount(self, app):
        result = OrderService.create_order(
            _order_input(tax=Decimal("-45"), total_amount=Decimal("270"))
        )
        assert result.kind == ErrorKind.VALIDATION

    @pytest.mark.parametrize("days", [0, -1, None, "3"])
    def test_total_days_at_least_one(self, app, days):
        result = OrderService.create_order(_order_input(total_days=days))
        assert result.kind == ErrorKind.VALIDATION

    def test_lines_must_match_subtotal(self, app):
        data = _order_input()
        data["items"][0]["line_total"] = Decimal("200")
        result = OrderService.create_order(data)
        assert result.kind == ErrorKind.VALIDATION

    def test_end_before_start(self, app):
        result = OrderService.create_order(
            _order_input(start_date=date(2025, 7, 4), end_date=date(2025, 7, 1))
        )
        assert result.kind == ErrorKind.VALIDATION
        assert result.detail["field"] == "endDate"


# ---------------------------------------------------------------------------
# transition_status
# ---------------------------------------------------------------------------

ALLOWED = [
    ("PENDING", "PAYMENT_COMPLETED"),
    ("PENDING", "CANCELLED"),
    ("PAYMENT_COMPLETED", "TAKEN"),
    ("PAYMENT_COMPLETED", "CANCELLED"),
    ("TAKEN", "RETURNED"),
]

REJECTED = [
    ("PENDING", "TAKEN"),
    ("PENDING", "RETURNED"),
    ("PAYMENT_COMPLETED", "PENDING"),
    ("TAKEN", "CANCELLED"),
    ("TAKEN", "PAYMENT_COMPLETED"),
    ("RETURNED", "TAKEN"),
    ("CANCELLED", "PENDING"),
    ("CANCELLED", "PAYMENT_COMPLETED"),
]


def _force_status(order, status):
    order.update(status=status)
    return order


class TestTransitionStatus:
    @pytest.mark.parametrize("current,new", ALLOWED)
    def test_allowed(self, make_order, current, new):
        order = _force_status(make_order(), current)
        result = OrderService.transition_status(order.id, new)
        assert result.ok
        assert result.value.status == new

    @pytest.mark.parametrize("current,new", REJECTED)
    def test_rejected(self, make_order, current, new):
        order = _force_status(make_order(), current)
        result = OrderService.transition_status(order.id, new)
        assert result.kind == ErrorKind.INVALID_TRANSITION
        assert OrderService.find_order(order.id).status == current

    def test_unknown_order(self, app):
        result = OrderService.transition_status("missing", OrderStatus.CANCELLED)
        assert result.kind == ErrorKind.NOT_FOUND

    def test_unknown_status(self, make_order):
        result = OrderService.transition_status(make_order().id, "LOST")
        assert result.kind == ErrorKind.VALIDATION

    def test_stale_expected_status(self, make_order):
        order = make_order()
        assert OrderService.transition_status(order.id, "PAYMENT_COMPLETED").ok

        again = OrderService.transition_status(
            order.id, OrderStatus.PAYMENT_COMPLETED, expected_status=OrderStatus.PENDING
        )
        assert again.kind == ErrorKind.INVALID_TRANSITION
        assert OrderService.find_order(order.id).status == "PAYMENT_COMPLETED"

    def test_concurrent_writer_loses(self, make_order):
        order = make_order()
        # another writer moves the row after this session has read it
        db.session.execute(
            Order.__table__.update()
            .where(Order.__table__.c.id == order.id)
            .values(status="CANCELLED")
        )
        db.session.commit()
        set_committed_value(order, "status", "PENDING")  # stale in-memory view

        result = OrderService.transition_status(order.id, OrderStatus.PAYMENT_COMPLETED)
        assert result.kind == ErrorKind.INVALID_TRANSITION
        db.session.expire_all()
        assert OrderService.find_order(order.id).status == "CANCELLED"

    def test_vehicle_availability_follows_order(self, make_order, vehicle):
        order = make_order()
        OrderService.transition_status(order.id, "PAYMENT_COMPLETED")
        OrderService.transition_status(order.id, "TAKEN")
        assert db.session.get(Vehicle, vehicle.id).is_available is False

        OrderService.transition_status(order.id, "RETURNED")
        db.session.expire_all()
        assert db.session.get(Vehicle, vehicle.id).is_available is True


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListing:
    def test_newest_first(self, make_order):
        older = make_order()
        newer = make_order()
        older.update(created_at=datetime.utcnow() - timedelta(days=1))

        orders = OrderService.get_orders_by_user("user-1")
        assert [o.id for o in orders] == [newer.id, older.id]

    def test_scoped_to_user(self, make_order, admin):
        mine = make_order()
        make_order(current_user=admin)

        orders = OrderService.get_orders_by_user("user-1")
        assert [o.id for o in orders] == [mine.id]

    def test_get_order_for_user(self, make_order, user, admin):
        order = make_order()
        stranger = type(user)(id="user-2")

        assert OrderService.get_order_for_user(order.id, user).ok
        assert OrderService.get_order_for_user(order.id, admin).ok
        assert OrderService.get_order_for_user(order.id, stranger).kind == ErrorKind.NOT_FOUND

    def test_all_orders_by_status(self, make_order):
        first = make_order()
        make_order()
        OrderService.transition_status(first.id, "CANCELLED")

        cancelled = OrderService.get_all_orders("CANCELLED")
        assert [o.id for o in cancelled] == [first.id]
        assert len(OrderService.get_all_orders()) == 2

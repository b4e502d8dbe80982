"""
Shared fixtures: a Flask app on in-memory SQLite, catalog vehicles, a
stubbed session provider and a stubbed payment gateway.
"""

import os
import tempfile
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="carrental-logs-"))

from flask import g  # noqa: E402

from carrental import create_app  # noqa: E402
from carrental.config import TestingConfig  # noqa: E402
from carrental.extensions import db  # noqa: E402
from carrental.models.vehicle import Vehicle  # noqa: E402
from carrental.services.auth import AuthService, CurrentUser  # noqa: E402
from carrental.services.checkout import CheckoutService  # noqa: E402


# ---------------------------------------------------------------------------
# App / database
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def vehicle(app):
    vehicle = Vehicle(
        id="veh-1",
        name="Toyota Corolla",
        brand="Toyota",
        model="Corolla",
        year=2022,
        price_per_day=Decimal("100.00"),
        seats=5,
        fuel_type="Petrol",
        transmission="Automatic",
        features='["AC", "Bluetooth"]',
        location="Addis Ababa",
    )
    return vehicle.save()


@pytest.fixture
def second_vehicle(app):
    vehicle = Vehicle(
        id="veh-2",
        name="Hyundai Tucson",
        brand="Hyundai",
        model="Tucson",
        year=2021,
        price_per_day=Decimal("150.00"),
        seats=5,
    )
    return vehicle.save()


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

@pytest.fixture
def user():
    return CurrentUser(
        id="user-1",
        name="Abebe Kebede",
        email="abebe@example.com",
        phone="0912345678",
    )


@pytest.fixture
def admin():
    return CurrentUser(
        id="admin-1",
        name="Admin User",
        email="admin@example.com",
        role="ADMIN",
    )


@pytest.fixture
def login_as(app):
    """Switch the identity the stubbed session provider reports."""
    patcher = patch.object(AuthService, "fetch_session", return_value=None)
    fetch_session = patcher.start()

    def _login(current_user):
        if current_user is None:
            fetch_session.return_value = None
        else:
            fetch_session.return_value = {
                "user": {
                    "id": current_user.id,
                    "name": current_user.name,
                    "email": current_user.email,
                    "role": current_user.role,
                    "phone": current_user.phone,
                }
            }
        # requests share the fixture's app context, drop the cached identity
        g.pop("current_user", None)
        return current_user

    yield _login
    patcher.stop()


# ---------------------------------------------------------------------------
# Gateway / background work
# ---------------------------------------------------------------------------

def gateway_response(status_code=200, body=None, text=""):
    res = MagicMock()
    res.status_code = status_code
    if isinstance(body, Exception):
        res.json.side_effect = body
    else:
        res.json.return_value = body
    res.text = text
    return res


def initialize_ok(checkout_url="https://checkout.test/pay/abc"):
    return gateway_response(
        200,
        {
            "status": "success",
            "message": "Hosted Link",
            "data": {"checkout_url": checkout_url},
        },
    )


def verify_ok(tx_ref, amount="360.00", currency="ETB", status="success"):
    return gateway_response(
        200,
        {
            "status": "success",
            "message": "Payment details",
            "data": {
                "tx_ref": tx_ref,
                "amount": amount,
                "currency": currency,
                "status": status,
            },
        },
    )


@pytest.fixture
def gateway():
    with patch("carrental.third_parties.chapa.requests.request") as request:
        yield request


@pytest.fixture
def email_task():
    with patch("carrental.tasks.booking_tasks.send_booking_confirmation") as task:
        yield task


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@pytest.fixture
def make_order(app, vehicle, user):
    """Create a PENDING order through the checkout path, no payment."""

    def _make(current_user=None, rental_days=3, start=date(2025, 7, 1)):
        current_user = current_user or user
        customer = CheckoutService.customer_from_session(current_user, "0912345678")
        result = CheckoutService.place_order(
            current_user,
            customer,
            [{"vehicleId": vehicle.id, "rentalDays": rental_days}],
            {"startDate": start.isoformat()},
        )
        assert result.ok, result
        return result.value

    return _make

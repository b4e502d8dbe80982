import re
from datetime import timedelta

from dateutil.parser import isoparse

import const
from carrental.enums.errors import ErrorKind
from carrental.enums.order import OrderStatus
from carrental.lib.logger import logger
from carrental.lib.result import Result
from carrental.lib.string import normalize_phone, to_money
from carrental.services.order import OrderService
from carrental.services.payment_services import PaymentService

PHONE_RE = re.compile(const.PHONE_PATTERN)


def _invalid(field, reason):
    return Result.failure(ErrorKind.VALIDATION, {"field": field, "reason": reason})


class CartItem:
    """One cart line: a vehicle, its per-day price and the number of days."""

    def __init__(self, vehicle_id, price_per_day, rental_days):
        self.vehicle_id = vehicle_id
        self.price_per_day = to_money(price_per_day)
        self.rental_days = rental_days

    @property
    def line_total(self):
        return to_money(self.price_per_day * self.rental_days)

    def __repr__(self):
        return f"CartItem({self.vehicle_id!r}, {self.price_per_day}, {self.rental_days})"


def compute_totals(cart_items):
    subtotal = to_money(sum((item.line_total for item in cart_items), to_money(0)))
    tax = to_money(subtotal * const.TAX_RATE)
    service_fee = to_money(const.SERVICE_FEE_PER_ITEM * len(cart_items))
    return {
        "subtotal": subtotal,
        "tax": tax,
        "service_fee": service_fee,
        "total": subtotal + tax + service_fee,
        "total_days": sum(item.rental_days for item in cart_items),
    }


def validate_customer(customer):
    """Check the contact data used for the order and the gateway.

    ``name`` and ``email`` come from the authenticated session; ``phone`` is
    the only field the customer types at checkout.
    """
    name = (customer.get("name") or "").strip()
    if not name:
        return _invalid("name", "Name is required")
    email = (customer.get("email") or "").strip()
    if not email:
        return _invalid("email", "Email is required")

    phone = normalize_phone(customer.get("phone"))
    if not phone:
        return _invalid("phone", "Phone number is required")
    if not PHONE_RE.match(phone):
        return _invalid(
            "phone", "Phone number must be 10 digits starting with 09 or 07"
        )

    return Result.success(
        {
            "name": name,
            "email": email,
            "phone": phone,
            "license": (customer.get("license") or "").strip() or None,
        }
    )


def _parse_date(value, field):
    if not value:
        return None, _invalid(field, f"{field} is required")
    try:
        return isoparse(str(value)).date(), None
    except (ValueError, OverflowError):
        return None, _invalid(field, f"{field} is not a valid date")


class CheckoutService:

    @staticmethod
    def customer_from_session(user, phone, license_number=None):
        return {
            "name": user.name,
            "email": user.email,
            "phone": phone if phone is not None else user.phone,
            "license": license_number,
        }

    @staticmethod
    def resolve_cart(raw_items):
        """Price raw cart lines (``vehicleId``/``rentalDays``) from the catalog."""
        if not raw_items:
            return _invalid("cartItems", "Your cart is empty")

        requested = []
        for index, raw in enumerate(raw_items):
            vehicle_id = raw.get("vehicleId") or raw.get("id")
            if not vehicle_id:
                return _invalid(f"cartItems.{index}.vehicleId", "vehicleId is required")
            rental_days = raw.get("rentalDays")
            if (
                not isinstance(rental_days, int)
                or isinstance(rental_days, bool)
                or not const.MIN_RENTAL_DAYS <= rental_days <= const.MAX_RENTAL_DAYS
            ):
                return _invalid(
                    f"cartItems.{index}.rentalDays",
                    f"rentalDays must be between {const.MIN_RENTAL_DAYS} and {const.MAX_RENTAL_DAYS}",
                )
            requested.append((str(vehicle_id), rental_days))

        vehicle_ids = [vehicle_id for vehicle_id, _ in requested]
        if len(set(vehicle_ids)) != len(vehicle_ids):
            return _invalid("cartItems", "The same vehicle is in the cart twice")

        vehicles = OrderService.find_vehicles(vehicle_ids)
        cart_items = []
        for vehicle_id, rental_days in requested:
            vehicle = vehicles.get(vehicle_id)
            if not vehicle:
                return Result.failure(
                    ErrorKind.NOT_FOUND, f"Vehicle {vehicle_id} not found"
                )
            if not vehicle.is_available:
                return _invalid("cartItems", f"{vehicle.name} is not available")
            cart_items.append(CartItem(vehicle_id, vehicle.price_per_day, rental_days))

        return Result.success((cart_items, vehicles))

    @staticmethod
    def build_order_input(user, customer_input, raw_items, rental_period, options=None):
        """Validate everything and assemble the order payload. No writes, no network."""
        options = options or {}

        customer = validate_customer(customer_input)
        if not customer.ok:
            return customer
        customer = customer.value

        resolved = CheckoutService.resolve_cart(raw_items)
        if not resolved.ok:
            return resolved
        cart_items, vehicles = resolved.value
        totals = compute_totals(cart_items)

        start_date, error = _parse_date((rental_period or {}).get("startDate"), "startDate")
        if error:
            return error
        end_date = start_date + timedelta(days=totals["total_days"])

        items = [
            {
                "vehicle_id": item.vehicle_id,
                "vehicle_snapshot": vehicles[item.vehicle_id].snapshot(),
                "daily_rate": item.price_per_day,
                "rental_days": item.rental_days,
                "line_total": item.line_total,
            }
            for item in cart_items
        ]

        return Result.success(
            {
                "user_id": user.id,
                "start_date": start_date,
                "end_date": end_date,
                "total_days": totals["total_days"],
                "daily_rate": to_money(sum(item.price_per_day for item in cart_items)),
                "subtotal": totals["subtotal"],
                "tax": totals["tax"],
                "service_fee": totals["service_fee"],
                "total_amount": totals["total"],
                "customer_name": customer["name"],
                "customer_email": customer["email"],
                "customer_phone": customer["phone"],
                "customer_license": customer["license"],
                "pickup_location": options.get("pickupLocation"),
                "dropoff_location": options.get("dropoffLocation"),
                "payment_method": options.get("paymentMethod"),
                "insurance_included": options.get("insuranceIncluded", False),
                "additional_driver": options.get("additionalDriver", False),
                "items": items,
            }
        )

    @staticmethod
    def place_order(user, customer_input, raw_items, rental_period, options=None):
        built = CheckoutService.build_order_input(
            user, customer_input, raw_items, rental_period, options
        )
        if not built.ok:
            return built
        return OrderService.create_order(built.value)

    @staticmethod
    def start_checkout(
        user,
        customer_input,
        raw_items,
        rental_period,
        options=None,
        declared_amount=None,
    ):
        """Create the order, then hand off to the gateway.

        If the gateway step fails the order is kept as PENDING so the payment
        can be retried or reconciled by hand.
        """
        built = CheckoutService.build_order_input(
            user, customer_input, raw_items, rental_period, options
        )
        if not built.ok:
            return built
        order_input = built.value

        if declared_amount is not None and to_money(declared_amount) != order_input["total_amount"]:
            return _invalid(
                "amount",
                f"Amount {to_money(declared_amount)} does not match the cart total "
                f"{order_input['total_amount']}",
            )

        created = OrderService.create_order(order_input)
        if not created.ok:
            return created
        order = created.value

        return CheckoutService._initialize_payment(order)

    @staticmethod
    def retry_payment(user, order_id):
        found = OrderService.get_order_for_user(order_id, user)
        if not found.ok:
            return found
        order = found.value
        if order.status_enum != OrderStatus.PENDING:
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Order {order.id} is {order.status} and cannot be paid again",
            )
        return CheckoutService._initialize_payment(order)

    @staticmethod
    def _initialize_payment(order):
        customer = {
            "name": order.customer_name,
            "email": order.customer_email,
            "phone": order.customer_phone,
        }
        initialized = PaymentService.initialize(order, customer)
        if not initialized.ok:
            logger.warning(
                f"Payment initialization failed for order {order.id}, "
                f"left PENDING: {initialized.message}"
            )
            return Result.failure(
                initialized.kind,
                {"reason": initialized.message, "orderId": order.id},
            )

        return Result.success(
            {
                "order": order,
                "payment_url": initialized.value["checkout_url"],
                "tx_ref": initialized.value["tx_ref"],
            }
        )

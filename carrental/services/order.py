import json
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

import const
from carrental.enums.errors import ErrorKind
from carrental.enums.order import (
    HOLDS_VEHICLE,
    RELEASES_VEHICLE,
    OrderStatus,
    can_transition,
)
from carrental.extensions import db
from carrental.lib.logger import logger
from carrental.lib.result import Result
from carrental.lib.string import to_money
from carrental.models.order import Order, OrderItem
from carrental.models.vehicle import Vehicle


def _invalid(field, reason):
    return Result.failure(ErrorKind.VALIDATION, {"field": field, "reason": reason})


class OrderService:
    """System of record for orders. Only this service writes ``Order.status``."""

    @staticmethod
    def find_order(order_id):
        return db.session.get(Order, order_id)

    @staticmethod
    def find_vehicles(vehicle_ids):
        if not vehicle_ids:
            return {}
        vehicles = Vehicle.query.filter(Vehicle.id.in_(vehicle_ids)).all()
        return {vehicle.id: vehicle for vehicle in vehicles}

    @staticmethod
    def validate_order_input(data):
        total_days = data.get("total_days")
        if not isinstance(total_days, int) or total_days < const.MIN_RENTAL_DAYS:
            return _invalid("totalDays", "totalDays must be an integer >= 1")

        money = {}
        for field in ("daily_rate", "subtotal", "tax", "service_fee", "total_amount"):
            value = data.get(field)
            if value is None:
                return _invalid(field, f"{field} is required")
            value = to_money(value)
            if value < 0:
                return _invalid(field, f"{field} must not be negative")
            money[field] = value

        if money["total_amount"] != money["subtotal"] + money["tax"] + money["service_fee"]:
            return _invalid(
                "totalAmount", "totalAmount must equal subtotal + tax + service fee"
            )

        items = data.get("items") or []
        if not items:
            return _invalid("items", "An order needs at least one vehicle")
        if sum(to_money(item["line_total"]) for item in items) != money["subtotal"]:
            return _invalid("subtotal", "subtotal does not match the order lines")
        if sum(item["rental_days"] for item in items) != total_days:
            return _invalid("totalDays", "totalDays does not match the order lines")

        start_date, end_date = data.get("start_date"), data.get("end_date")
        if not start_date or not end_date:
            return _invalid("startDate", "Rental period is required")
        if end_date < start_date:
            return _invalid("endDate", "endDate must not be before startDate")

        for field in ("user_id", "customer_name", "customer_email", "customer_phone"):
            if not data.get(field):
                return _invalid(field, f"{field} is required")

        return Result.success(money)

    @staticmethod
    def create_order(data):
        validation = OrderService.validate_order_input(data)
        if not validation.ok:
            return validation
        money = validation.value

        order = Order(
            user_id=data["user_id"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            total_days=data["total_days"],
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            customer_phone=data["customer_phone"],
            customer_license=data.get("customer_license"),
            pickup_location=data.get("pickup_location"),
            dropoff_location=data.get("dropoff_location"),
            payment_method=data.get("payment_method") or const.DEFAULT_PAYMENT_METHOD,
            insurance_included=bool(data.get("insurance_included")),
            additional_driver=bool(data.get("additional_driver")),
            status=OrderStatus.PENDING.value,
            **money,
        )
        for item in data["items"]:
            order.items.append(
                OrderItem(
                    vehicle_id=item["vehicle_id"],
                    vehicle_snapshot=json.dumps(item["vehicle_snapshot"]),
                    daily_rate=to_money(item["daily_rate"]),
                    rental_days=item["rental_days"],
                    line_total=to_money(item["line_total"]),
                )
            )

        try:
            db.session.add(order)
            db.session.commit()
        except SQLAlchemyError as ex:
            db.session.rollback()
            logger.error(f"Error creating order for user {data['user_id']}: {ex}")
            return Result.failure(ErrorKind.PERSISTENCE, "Could not save the order")

        logger.info(
            f"Order {order.id} created for user {order.user_id}: "
            f"{order.total_amount} {const.CURRENCY}, {order.total_days} days"
        )
        return Result.success(order)

    @staticmethod
    def get_orders_by_user(user_id):
        return (
            Order.query.filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def get_all_orders(status=None):
        query = Order.query
        if status:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def get_order_for_user(order_id, user):
        order = OrderService.find_order(order_id)
        # someone else's order is reported as missing, not forbidden
        if not order or (order.user_id != user.id and not user.is_admin):
            return Result.failure(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
        return Result.success(order)

    @staticmethod
    def transition_status(order_id, new_status, expected_status=None):
        """Move an order along the status machine.

        The write is a compare-and-set on the current status, so of two
        concurrent writers starting from the same status only one succeeds.
        """
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            return _invalid("status", f"Unknown order status {new_status}")
        if expected_status is not None:
            expected_status = OrderStatus(expected_status)

        order = OrderService.find_order(order_id)
        if not order:
            return Result.failure(ErrorKind.NOT_FOUND, f"Order {order_id} not found")

        current = order.status_enum
        if expected_status is not None and current != expected_status:
            logger.error(
                f"Order {order_id} is {current.value}, expected {expected_status.value} "
                f"before moving to {new_status.value}"
            )
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Order {order_id} is {current.value}, not {expected_status.value}",
            )

        if not can_transition(current, new_status):
            logger.error(
                f"Invalid order transition {order_id}: {current.value} -> {new_status.value}"
            )
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot move order from {current.value} to {new_status.value}",
            )

        try:
            updated = (
                Order.query.filter(Order.id == order_id, Order.status == current.value)
                .update(
                    {"status": new_status.value, "updated_at": datetime.utcnow()},
                    synchronize_session=False,
                )
            )
            if updated != 1:
                db.session.rollback()
                logger.error(
                    f"Order {order_id} changed concurrently while moving "
                    f"{current.value} -> {new_status.value}"
                )
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Order {order_id} was updated concurrently",
                )

            OrderService._apply_vehicle_availability(order, new_status)
            db.session.commit()
        except SQLAlchemyError as ex:
            db.session.rollback()
            logger.error(f"Error updating order {order_id} status: {ex}")
            return Result.failure(ErrorKind.PERSISTENCE, "Could not update the order")

        db.session.refresh(order)
        logger.info(f"Order {order_id}: {current.value} -> {new_status.value}")
        return Result.success(order)

    @staticmethod
    def _apply_vehicle_availability(order, new_status):
        if new_status in HOLDS_VEHICLE:
            available = False
        elif new_status in RELEASES_VEHICLE:
            available = True
        else:
            return
        vehicle_ids = order.vehicle_ids
        if vehicle_ids:
            Vehicle.query.filter(Vehicle.id.in_(vehicle_ids)).update(
                {"is_available": available}, synchronize_session=False
            )

from flask_restx import Namespace, Resource

import const
from carrental.decorators import admin_required, login_required, parameters
from carrental.enums.order import MANUAL_STATUSES, OrderStatus
from carrental.errors.exceptions import Forbidden
from carrental.lib.response import Response
from carrental.services.auth import AuthService
from carrental.services.checkout import CheckoutService
from carrental.services.order import OrderService

ns = Namespace(name="orders", description="Rental orders")

CART_ITEMS_SCHEMA = {
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "properties": {
            "vehicleId": {"type": "string"},
            "id": {"type": "string"},
            "rentalDays": {"type": "integer"},
        },
        "required": ["rentalDays"],
    },
}

RENTAL_PERIOD_SCHEMA = {
    "type": "object",
    "properties": {
        "startDate": {"type": "string"},
        "endDate": {"type": "string"},
        "totalDays": {"type": "integer"},
    },
    "required": ["startDate"],
}


@ns.route("")
class APIOrders(Resource):
    @login_required
    @parameters(
        type="object",
        properties={
            "userId": {"type": "string"},
            "status": {
                "type": "string",
                "enum": [status.value for status in OrderStatus],
            },
        },
        required=[],
    )
    def get(self, args):
        current_user = AuthService.get_current_identity()
        user_id = args.get("userId")

        if current_user.is_admin:
            if user_id:
                orders = OrderService.get_orders_by_user(user_id)
            else:
                orders = OrderService.get_all_orders(args.get("status"))
        else:
            if user_id and user_id != current_user.id:
                raise Forbidden(message="You can only list your own orders")
            orders = OrderService.get_orders_by_user(current_user.id)
            if args.get("status"):
                orders = [order for order in orders if order.status == args["status"]]

        return Response(
            data=[order.to_dict() for order in orders],
            message="Orders retrieved",
        ).to_dict()

    @login_required
    @parameters(
        type="object",
        properties={
            "cartItems": CART_ITEMS_SCHEMA,
            "vehicleId": {"type": "string"},
            "totalDays": {"type": "integer"},
            "rentalPeriod": RENTAL_PERIOD_SCHEMA,
            "startDate": {"type": "string"},
            "customerPhone": {"type": "string", "name": "Phone number"},
            "customerLicense": {"type": ["string", "null"]},
            "pickupLocation": {"type": ["string", "null"]},
            "dropoffLocation": {"type": ["string", "null"]},
            "paymentMethod": {"type": "string", "enum": list(const.PAYMENT_METHODS)},
            "insuranceIncluded": {"type": "boolean"},
            "additionalDriver": {"type": "boolean"},
        },
        required=[],
    )
    def post(self, args):
        current_user = AuthService.get_current_identity()

        cart_items = args.get("cartItems")
        if not cart_items and args.get("vehicleId"):
            # single-vehicle booking
            cart_items = [
                {"vehicleId": args["vehicleId"], "rentalDays": args.get("totalDays")}
            ]
        rental_period = args.get("rentalPeriod") or {"startDate": args.get("startDate")}

        customer = CheckoutService.customer_from_session(
            current_user, args.get("customerPhone"), args.get("customerLicense")
        )
        result = CheckoutService.place_order(
            current_user, customer, cart_items, rental_period, args
        )
        if not result.ok:
            return Response.from_failure(result).to_dict()

        return Response(
            data=result.value.to_dict(),
            message="Order created",
            status=201,
        ).to_dict()


@ns.route("/<string:order_id>")
class APIOrderDetail(Resource):
    @login_required
    def get(self, order_id):
        current_user = AuthService.get_current_identity()
        result = OrderService.get_order_for_user(order_id, current_user)
        if not result.ok:
            return Response.from_failure(result).to_dict()

        order = result.value
        data = order.to_dict()
        data["transactions"] = [tx.to_dict() for tx in order.transactions]
        return Response(data=data).to_dict()


@ns.route("/<string:order_id>/status")
class APIOrderStatus(Resource):
    @admin_required
    @parameters(
        type="object",
        properties={
            "status": {
                "type": "string",
                "enum": [status.value for status in MANUAL_STATUSES],
            },
        },
        required=["status"],
    )
    def patch(self, args, order_id):
        result = OrderService.transition_status(order_id, args["status"])
        if not result.ok:
            return Response.from_failure(result).to_dict()
        return Response(
            data=result.value.to_dict(),
            message=f"Order moved to {result.value.status}",
        ).to_dict()

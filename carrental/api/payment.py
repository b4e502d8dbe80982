from flask import request
from flask_restx import Namespace, Resource

import const
from carrental.api.orders import CART_ITEMS_SCHEMA, RENTAL_PERIOD_SCHEMA
from carrental.decorators import login_required, parameters
from carrental.lib.logger import log_payment_message
from carrental.lib.response import Response
from carrental.services.auth import AuthService
from carrental.services.checkout import CheckoutService
from carrental.services.payment_services import PaymentService

ns = Namespace(name="payment", description="Chapa payments")


def _checkout_response(result):
    if not result.ok:
        return Response.from_failure(result).to_dict()
    checkout = result.value
    return Response(
        message="Payment initialized",
        data=checkout["order"].to_dict(),
        paymentUrl=checkout["payment_url"],
        txRef=checkout["tx_ref"],
        orderId=checkout["order"].id,
    ).to_dict()


def _callback_response(result):
    if not result.ok:
        return Response.from_failure(result).to_dict()
    order = result.value["order"]
    return Response(
        message="Payment verified" if result.value["applied"] else "Already processed",
        data={
            "orderId": order.id,
            "status": order.status,
            "txRef": result.value["transaction"].tx_ref,
        },
    ).to_dict()


@ns.route("/initialize")
class APIInitializePayment(Resource):
    @login_required
    @parameters(
        type="object",
        properties={
            "amount": {"type": "number", "exclusiveMinimum": 0, "name": "Amount"},
            "email": {"type": "string"},
            "firstName": {"type": "string"},
            "lastName": {"type": "string"},
            "phoneNumber": {"type": "string", "name": "Phone number"},
            "checkoutData": {
                "type": "object",
                "properties": {
                    "cartItems": CART_ITEMS_SCHEMA,
                    "rentalPeriod": RENTAL_PERIOD_SCHEMA,
                    "paymentMethod": {
                        "type": "string",
                        "enum": list(const.PAYMENT_METHODS),
                    },
                    "totalAmount": {"type": "number"},
                    "customerLicense": {"type": ["string", "null"]},
                    "pickupLocation": {"type": ["string", "null"]},
                    "dropoffLocation": {"type": ["string", "null"]},
                    "insuranceIncluded": {"type": "boolean"},
                    "additionalDriver": {"type": "boolean"},
                },
                "required": ["cartItems", "rentalPeriod"],
            },
        },
        required=["phoneNumber", "amount", "checkoutData"],
    )
    def post(self, args):
        current_user = AuthService.get_current_identity()
        checkout_data = args["checkoutData"]

        # name and email always come from the session, not from the body
        customer = CheckoutService.customer_from_session(
            current_user, args["phoneNumber"], checkout_data.get("customerLicense")
        )
        result = CheckoutService.start_checkout(
            current_user,
            customer,
            checkout_data["cartItems"],
            checkout_data["rentalPeriod"],
            options=checkout_data,
            declared_amount=args["amount"],
        )
        return _checkout_response(result)


@ns.route("/retry")
class APIRetryPayment(Resource):
    @login_required
    @parameters(
        type="object",
        properties={"orderId": {"type": "string", "name": "Order id"}},
        required=["orderId"],
    )
    def post(self, args):
        current_user = AuthService.get_current_identity()
        result = CheckoutService.retry_payment(current_user, args["orderId"])
        return _checkout_response(result)


@ns.route("/callback")
class APIPaymentCallback(Resource):
    @parameters(
        type="object",
        properties={
            "trx_ref": {"type": "string"},
            "tx_ref": {"type": "string"},
            "ref_id": {"type": "string"},
            "status": {"type": "string"},
        },
        required=[],
    )
    def get(self, args):
        tx_ref = args.get("trx_ref") or args.get("tx_ref")
        log_payment_message(
            f"Callback received: ref_id={args.get('ref_id')} status={args.get('status')}",
            tx_ref=tx_ref,
        )
        result = PaymentService.handle_callback(
            tx_ref, args.get("ref_id"), args.get("status")
        )
        return _callback_response(result)

    def post(self):
        # some gateway deployments deliver the callback as a JSON body
        return self.get()


@ns.route("/webhook")
class APIPaymentWebhook(Resource):
    def post(self):
        raw_body = request.get_data()
        signature = None
        for header in const.WEBHOOK_SIGNATURE_HEADERS:
            signature = request.headers.get(header)
            if signature:
                break

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return Response(
                success=False, message="Request body must be a JSON object", status=400
            ).to_dict()

        result = PaymentService.handle_webhook(raw_body, signature, payload)
        return _callback_response(result)


@ns.route("/verify/<string:tx_ref>")
class APIVerifyPayment(Resource):
    @login_required
    def get(self, tx_ref):
        current_user = AuthService.get_current_identity()
        result = PaymentService.get_transaction_status(tx_ref, current_user)
        if not result.ok:
            return Response.from_failure(result).to_dict()
        return Response(data=result.value).to_dict()


@ns.route("/return")
class APIPaymentReturn(Resource):
    @login_required
    @parameters(
        type="object",
        properties={
            "orderId": {"type": "string", "name": "Order id"},
            "payment": {"type": "string"},
        },
        required=["orderId"],
    )
    def get(self, args):
        current_user = AuthService.get_current_identity()
        result = PaymentService.describe_return(
            args["orderId"], current_user, args.get("payment")
        )
        if not result.ok:
            return Response.from_failure(result).to_dict()
        return Response(data=result.value).to_dict()

import json
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

import const
from carrental.enums.errors import ErrorKind
from carrental.enums.order import OrderStatus
from carrental.enums.payment import PaymentLogType, PaymentStatus, SETTLED_STATUSES
from carrental.extensions import db
from carrental.lib.logger import log_payment_message, logger
from carrental.lib.result import Result
from carrental.lib.string import (
    format_money,
    generate_tx_ref,
    normalize_phone,
    split_full_name,
    to_money,
)
from carrental.models.payment import PaymentTransaction
from carrental.models.payment_logs import PaymentLog
from carrental.services.order import OrderService
from carrental.third_parties.chapa import ChapaClient, verify_webhook_signature

FAILED_GATEWAY_STATUSES = {"failed", "failure", "cancelled", "canceled", "reversed", "expired"}

DISPLAY_STATES = {
    OrderStatus.PENDING: "processing",
    OrderStatus.PAYMENT_COMPLETED: "paid",
    OrderStatus.TAKEN: "paid",
    OrderStatus.RETURNED: "completed",
    OrderStatus.CANCELLED: "cancelled",
}

TRANSACTION_STATES = {
    PaymentStatus.INITIALIZED: "processing",
    PaymentStatus.SUCCEEDED: "paid",
    PaymentStatus.FAILED: "failed",
    PaymentStatus.MISMATCH: "under_review",
    PaymentStatus.DUPLICATE: "under_review",
}


class PaymentService:

    @staticmethod
    def find_transaction(tx_ref):
        return PaymentTransaction.query.filter(PaymentTransaction.tx_ref == tx_ref).first()

    @staticmethod
    def get_client():
        return ChapaClient.from_config()

    @staticmethod
    def create_payment_log(tx_ref, log_type, outcome, transaction_id=None):
        """Keep the raw gateway answer. ``outcome`` is the Result value/detail dict."""
        outcome = outcome if isinstance(outcome, dict) else {}
        try:
            payment_log = PaymentLog(
                transaction_id=transaction_id,
                tx_ref=tx_ref,
                type=log_type.value,
                status_code=outcome.get("status_code"),
                response_json=json.dumps(outcome.get("raw"), ensure_ascii=False, default=str),
            )
            db.session.add(payment_log)
            db.session.commit()
        except SQLAlchemyError as ex:
            db.session.rollback()
            logger.error(f"Error creating payment_log for {tx_ref}: {ex}")

    @staticmethod
    def build_initialize_payload(order, customer, tx_ref):
        config = current_app.config
        first_name, last_name = split_full_name(customer.get("name"))
        return {
            "amount": format_money(order.total_amount),
            "currency": const.CURRENCY,
            "email": customer.get("email"),
            "first_name": first_name,
            "last_name": last_name,
            "phone_number": normalize_phone(customer.get("phone")),
            "tx_ref": tx_ref,
            "callback_url": f"{config['BASE_URL'].rstrip('/')}/api/payment/callback",
            "return_url": (
                f"{config['FRONTEND_URL'].rstrip('/')}/dashboard/bookings"
                f"?payment=success&orderId={order.id}"
            ),
            "customization": {
                "title": const.GATEWAY_TITLE,
                "description": const.GATEWAY_DESCRIPTION,
            },
        }

    @staticmethod
    def initialize(order, customer):
        """Open a hosted checkout for ``order`` and return its URL and tx_ref.

        The transaction row is written before the gateway is contacted so a
        payment made on the returned page can always be traced to its order.
        """
        amount = to_money(order.total_amount)
        if amount is None or amount <= 0:
            return Result.failure(
                ErrorKind.VALIDATION,
                {"field": "amount", "reason": "Valid amount is required"},
            )
        if not normalize_phone(customer.get("phone")):
            return Result.failure(
                ErrorKind.VALIDATION,
                {"field": "phoneNumber", "reason": "Phone number is required"},
            )
        if order.status_enum != OrderStatus.PENDING:
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Order {order.id} is {order.status} and cannot be paid",
            )

        tx_ref = generate_tx_ref()
        transaction = PaymentTransaction(
            tx_ref=tx_ref,
            order_id=order.id,
            amount=amount,
            currency=const.CURRENCY,
            status=PaymentStatus.INITIALIZED.value,
        )
        try:
            db.session.add(transaction)
            db.session.commit()
        except SQLAlchemyError as ex:
            db.session.rollback()
            logger.error(f"Error creating payment transaction for order {order.id}: {ex}")
            return Result.failure(ErrorKind.PERSISTENCE, "Could not start the payment")

        payload = PaymentService.build_initialize_payload(order, customer, tx_ref)
        log_payment_message(
            f"Initializing payment for order {order.id}: {payload['amount']} {const.CURRENCY}",
            tx_ref=tx_ref,
        )
        result = PaymentService.get_client().initialize_transaction(payload)
        PaymentService.create_payment_log(
            tx_ref,
            PaymentLogType.INITIALIZE,
            result.value if result.ok else result.detail,
            transaction.id,
        )

        if not result.ok:
            reason = result.message
            log_payment_message(
                f"Payment initialization failed ({result.kind.value}): {reason}",
                tx_ref=tx_ref,
                level="WARNING",
            )
            transaction.update(status=PaymentStatus.FAILED.value, fail_reason=reason[:255])
            return Result.failure(result.kind, reason)

        checkout_url = result.value["checkout_url"]
        transaction.update(checkout_url=checkout_url)
        log_payment_message(f"Checkout url issued for order {order.id}", tx_ref=tx_ref)
        return Result.success({"checkout_url": checkout_url, "tx_ref": tx_ref})

    @staticmethod
    def handle_callback(tx_ref, ref_id, callback_status=None):
        """Reconcile one gateway notification with its order.

        Delivery is at-least-once: a notification for a transaction that was
        already settled is acknowledged without doing anything. The status in
        the notification is never trusted; the gateway is asked directly.
        """
        if not tx_ref:
            return Result.failure(
                ErrorKind.VALIDATION, {"field": "trx_ref", "reason": "trx_ref is required"}
            )

        transaction = PaymentService.find_transaction(tx_ref)
        if not transaction:
            log_payment_message("Callback for unknown tx_ref", tx_ref=tx_ref, level="WARNING")
            return Result.failure(ErrorKind.NOT_FOUND, f"Transaction {tx_ref} not found")

        if transaction.status_enum in SETTLED_STATUSES:
            if ref_id and transaction.ref_id and ref_id != transaction.ref_id:
                log_payment_message(
                    f"Settled transaction re-notified with a different ref_id {ref_id}",
                    tx_ref=tx_ref,
                    level="WARNING",
                )
            log_payment_message("Duplicate callback absorbed", tx_ref=tx_ref)
            return Result.success(
                {"order": transaction.order, "transaction": transaction, "applied": False}
            )

        if not ref_id:
            return Result.failure(
                ErrorKind.VALIDATION, {"field": "ref_id", "reason": "ref_id is required"}
            )

        verified = PaymentService.get_client().verify_transaction(ref_id)
        PaymentService.create_payment_log(
            tx_ref,
            PaymentLogType.VERIFY,
            verified.value if verified.ok else verified.detail,
            transaction.id,
        )
        if not verified.ok:
            log_payment_message(
                f"Verification unavailable, asking gateway to retry: {verified.message}",
                tx_ref=tx_ref,
                level="WARNING",
            )
            return Result.failure(ErrorKind.GATEWAY_UNAVAILABLE, verified.message)

        claimed_success = (callback_status or "").lower() == const.GATEWAY_SUCCESS
        data = verified.value["data"]
        verified_status = str(data.get("status") or "").lower()
        if verified.value["status"] != const.GATEWAY_SUCCESS or verified_status != const.GATEWAY_SUCCESS:
            return PaymentService._reject_unverified(
                transaction, ref_id, data, claimed_success
            )

        problem = PaymentService._find_mismatch(transaction, data)
        if problem:
            return PaymentService._flag_mismatch(transaction, ref_id, problem)

        return PaymentService._apply_success(transaction, ref_id)

    @staticmethod
    def _find_mismatch(transaction, data):
        if not data.get("tx_ref"):
            return "verified tx_ref missing"
        if data["tx_ref"] != transaction.tx_ref:
            return f"verified tx_ref {data['tx_ref']} differs from {transaction.tx_ref}"
        if data.get("amount") is None:
            return "verified amount missing"
        try:
            verified_amount = to_money(data["amount"])
        except ArithmeticError:
            return f"verified amount {data['amount']!r} is not a number"
        if verified_amount != to_money(transaction.amount):
            return f"verified amount {verified_amount} differs from {transaction.amount}"
        if data.get("currency") and data["currency"] != transaction.currency:
            return f"verified currency {data['currency']} differs from {transaction.currency}"
        return None

    @staticmethod
    def _reject_unverified(transaction, ref_id, data, claimed_success):
        tx_ref = transaction.tx_ref
        verified_status = str(data.get("status") or "").lower()
        definite_failure = verified_status in FAILED_GATEWAY_STATUSES

        if claimed_success:
            reason = f"callback claimed success, gateway says {verified_status or 'unknown'}"
            if definite_failure:
                return PaymentService._flag_mismatch(transaction, ref_id, reason)
            log_payment_message(reason, tx_ref=tx_ref, level="ERROR")
            return Result.failure(ErrorKind.VERIFICATION_MISMATCH, reason)

        if definite_failure:
            # ref_id is unique; only keep it once the gateway ties it to this tx_ref
            transaction.update(
                status=PaymentStatus.FAILED.value,
                ref_id=ref_id if data.get("tx_ref") == tx_ref else transaction.ref_id,
                fail_reason=f"gateway status {verified_status} (ref_id {ref_id})"[:255],
            )
            log_payment_message(
                f"Payment failed at gateway ({verified_status}), order stays PENDING",
                tx_ref=tx_ref,
                level="WARNING",
            )
            return Result.failure(ErrorKind.GATEWAY_REJECTED, "Payment was not completed")

        log_payment_message(
            f"Payment not settled yet ({verified_status or 'unknown'})", tx_ref=tx_ref
        )
        return Result.failure(ErrorKind.GATEWAY_REJECTED, "Payment is not settled yet")

    @staticmethod
    def _flag_mismatch(transaction, ref_id, reason):
        # the ref_id may belong to another transaction, keep it out of the unique column
        transaction.update(
            status=PaymentStatus.MISMATCH.value,
            fail_reason=f"{reason} (ref_id {ref_id})"[:255],
        )
        log_payment_message(
            f"Verification mismatch, order {transaction.order_id} left PENDING: {reason}",
            tx_ref=transaction.tx_ref,
            level="ERROR",
        )
        return Result.failure(ErrorKind.VERIFICATION_MISMATCH, reason)

    @staticmethod
    def _apply_success(transaction, ref_id):
        tx_ref = transaction.tx_ref
        order = transaction.order

        transaction.ref_id = ref_id
        transaction.verified_at = datetime.utcnow()
        transaction.fail_reason = None

        if order.status_enum != OrderStatus.PENDING:
            return PaymentService._mark_duplicate(transaction, order)

        transaction.status = PaymentStatus.SUCCEEDED.value
        transition = OrderService.transition_status(
            order.id, OrderStatus.PAYMENT_COMPLETED, expected_status=OrderStatus.PENDING
        )
        if not transition.ok:
            if transition.kind != ErrorKind.INVALID_TRANSITION:
                return transition
            # lost the race against a concurrent delivery; see who won
            db.session.refresh(order)
            db.session.refresh(transaction)
            if transaction.status_enum in SETTLED_STATUSES:
                log_payment_message("Concurrent callback already applied", tx_ref=tx_ref)
                return Result.success(
                    {"order": order, "transaction": transaction, "applied": False}
                )
            transaction.ref_id = ref_id
            transaction.verified_at = datetime.utcnow()
            return PaymentService._mark_duplicate(transaction, order)

        order = transition.value
        log_payment_message(f"Order {order.id} marked PAYMENT_COMPLETED", tx_ref=tx_ref)
        PaymentService.notify_payment_completed(order)
        return Result.success({"order": order, "transaction": transaction, "applied": True})

    @staticmethod
    def _mark_duplicate(transaction, order):
        transaction.update(
            status=PaymentStatus.DUPLICATE.value,
            fail_reason=f"order already {order.status}",
        )
        log_payment_message(
            f"Second successful payment for order {order.id} ({order.status}), "
            "needs refund review",
            tx_ref=transaction.tx_ref,
            level="ERROR",
        )
        return Result.success({"order": order, "transaction": transaction, "applied": False})

    @staticmethod
    def notify_payment_completed(order):
        from carrental.tasks.booking_tasks import send_booking_confirmation

        try:
            send_booking_confirmation.delay(order.id)
        except Exception as ex:
            # the payment is already recorded; a lost email must not fail the callback
            logger.error(f"Could not enqueue confirmation email for order {order.id}: {ex}")

    @staticmethod
    def handle_webhook(raw_body, signature, payload):
        secret = current_app.config.get("CHAPA_WEBHOOK_SECRET")
        if not secret:
            return Result.failure(ErrorKind.NOT_FOUND, "Webhook is not enabled")
        if not verify_webhook_signature(secret, raw_body, signature):
            logger.warning("Rejected webhook with an invalid signature")
            return Result.failure(ErrorKind.UNAUTHORIZED, "Invalid webhook signature")

        tx_ref = payload.get("tx_ref") or payload.get("trx_ref")
        ref_id = payload.get("reference") or payload.get("ref_id")
        PaymentService.create_payment_log(
            tx_ref, PaymentLogType.WEBHOOK, {"status_code": None, "raw": payload}
        )
        return PaymentService.handle_callback(tx_ref, ref_id, payload.get("status"))

    @staticmethod
    def get_transaction_status(tx_ref, user):
        transaction = PaymentService.find_transaction(tx_ref)
        if not transaction or (
            transaction.order.user_id != user.id and not user.is_admin
        ):
            return Result.failure(ErrorKind.NOT_FOUND, f"Transaction {tx_ref} not found")

        order = transaction.order
        return Result.success(
            {
                "tx_ref": transaction.tx_ref,
                "status": transaction.status,
                "state": TRANSACTION_STATES[transaction.status_enum],
                "amount": float(transaction.amount),
                "currency": transaction.currency,
                "order_id": order.id,
                "order_status": order.status,
            }
        )

    @staticmethod
    def describe_return(order_id, user, payment_hint=None):
        """Authoritative answer for the browser coming back from the gateway."""
        found = OrderService.get_order_for_user(order_id, user)
        if not found.ok:
            return found
        order = found.value
        state = DISPLAY_STATES[order.status_enum]
        if payment_hint == "success" and state == "processing":
            logger.info(f"Return url says success for order {order.id}, still waiting for callback")
        return Result.success(
            {"order_id": order.id, "status": order.status, "state": state, "order": order.to_dict()}
        )

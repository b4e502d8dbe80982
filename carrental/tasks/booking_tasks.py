from celery import shared_task
from flask import current_app

import const
from carrental.extensions import db
from carrental.lib.logger import logger
from carrental.lib.string import format_money
from carrental.third_parties.email import send_email


@shared_task(bind=True, name="send_booking_confirmation", max_retries=3)
def send_booking_confirmation(self, order_id):
    from carrental.services.order import OrderService

    try:
        order = OrderService.find_order(order_id)
        if not order:
            logger.warning(f"Booking confirmation skipped, order {order_id} not found")
            return False

        items = []
        for item in order.items:
            snapshot = item._to_json()["vehicle_snapshot"] or {}
            items.append(
                {
                    "name": snapshot.get("name", item.vehicle_id),
                    "rental_days": item.rental_days,
                    "daily_rate": format_money(item.daily_rate),
                    "line_total": format_money(item.line_total),
                }
            )

        context = {
            "order_id": order.id,
            "customer_name": order.customer_name,
            "start_date": order.start_date.isoformat(),
            "end_date": order.end_date.isoformat(),
            "total_days": order.total_days,
            "items": items,
            "subtotal": format_money(order.subtotal),
            "tax": format_money(order.tax),
            "service_fee": format_money(order.service_fee),
            "total_amount": format_money(order.total_amount),
            "currency": const.CURRENCY,
            "pickup_location": order.pickup_location,
            "dropoff_location": order.dropoff_location,
            "bookings_url": f"{current_app.config['FRONTEND_URL']}/dashboard/bookings",
        }
        sent = send_email(
            order.customer_email,
            "Your vehicle rental is confirmed",
            "booking_confirmation.html",
            context,
        )
        if not sent:
            raise self.retry(countdown=60)
        return True
    finally:
        db.session.remove()

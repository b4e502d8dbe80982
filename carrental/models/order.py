import uuid

from carrental.enums.order import OrderStatus
from carrental.extensions import db
from carrental.models.base import BaseModel


class Order(db.Model, BaseModel):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(64), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False)
    daily_rate = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False)
    service_fee = db.Column(db.Numeric(12, 2), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False)
    customer_license = db.Column(db.String(100))

    pickup_location = db.Column(db.String(255))
    dropoff_location = db.Column(db.String(255))
    status = db.Column(
        db.String(32), nullable=False, default=OrderStatus.PENDING.value, index=True
    )
    payment_method = db.Column(db.String(50))
    insurance_included = db.Column(db.Boolean, default=False, nullable=False)
    additional_driver = db.Column(db.Boolean, default=False, nullable=False)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        order_by="OrderItem.id",
    )
    transactions = db.relationship(
        "PaymentTransaction",
        backref="order",
        lazy="select",
        order_by="PaymentTransaction.created_at",
    )

    @property
    def status_enum(self):
        return OrderStatus(self.status)

    @property
    def vehicle_ids(self):
        return [item.vehicle_id for item in self.items]

    def to_dict(self):
        data = self._to_json()
        data["items"] = [item._to_json() for item in self.items]
        return data


class OrderItem(db.Model, BaseModel):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False)
    vehicle_id = db.Column(db.String(36), nullable=False)
    vehicle_snapshot = db.Column(db.Text, nullable=False)
    daily_rate = db.Column(db.Numeric(12, 2), nullable=False)
    rental_days = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    to_json_parse = ("vehicle_snapshot",)
    to_json_filter = ("order_id", "created_at", "updated_at")

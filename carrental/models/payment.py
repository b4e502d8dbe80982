from carrental.enums.payment import PaymentStatus
from carrental.extensions import db
from carrental.models.base import BaseModel


class PaymentTransaction(db.Model, BaseModel):
    __tablename__ = "payment_transactions"

    id = db.Column(db.Integer, primary_key=True)
    tx_ref = db.Column(db.String(64), nullable=False, unique=True)
    order_id = db.Column(
        db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True
    )
    ref_id = db.Column(db.String(128), unique=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False)
    checkout_url = db.Column(db.String(1024))
    status = db.Column(
        db.String(32), nullable=False, default=PaymentStatus.INITIALIZED.value
    )
    fail_reason = db.Column(db.String(255))
    verified_at = db.Column(db.DateTime)

    @property
    def status_enum(self):
        return PaymentStatus(self.status)

    def to_dict(self):
        return self._to_json()

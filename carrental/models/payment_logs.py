from carrental.extensions import db
from carrental.models.base import BaseModel


class PaymentLog(db.Model, BaseModel):
    __tablename__ = "payment_logs"

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("payment_transactions.id"), nullable=True
    )
    tx_ref = db.Column(db.String(64), index=True)
    type = db.Column(db.String(20), nullable=False)
    status_code = db.Column(db.Integer)
    response_json = db.Column(db.Text)  # raw gateway response

    transaction = db.relationship("PaymentTransaction", backref="logs")

    to_json_parse = ("response_json",)

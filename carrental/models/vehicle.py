import json

from carrental.extensions import db
from carrental.models.base import BaseModel


class Vehicle(db.Model, BaseModel):
    __tablename__ = "vehicles"

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False, default="CAR")
    brand = db.Column(db.String(100), nullable=False)
    model = db.Column(db.String(100), nullable=False)
    year = db.Column(db.Integer)
    price_per_day = db.Column(db.Numeric(12, 2), nullable=False)
    seats = db.Column(db.Integer, default=4)
    fuel_type = db.Column(db.String(50))
    transmission = db.Column(db.String(50))
    mileage = db.Column(db.String(100), default="Unlimited")
    features = db.Column(db.Text)
    location = db.Column(db.String(255))
    is_available = db.Column(db.Boolean, default=True, nullable=False)

    to_json_parse = ("features",)

    def snapshot(self):
        """Read-only copy embedded in order items for historical accuracy."""
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "model": self.model,
            "type": self.type,
            "seats": self.seats,
            "fuel_type": self.fuel_type,
            "transmission": self.transmission,
            "price_per_day": str(self.price_per_day),
            "features": json.loads(self.features) if self.features else [],
            "mileage": self.mileage,
        }

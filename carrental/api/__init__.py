# coding: utf8
from flask import Blueprint
from flask_restx import Api

from carrental.api.orders import ns as orders_ns
from carrental.api.payment import ns as payment_ns
from carrental.errors.exceptions import ApiError
from carrental.errors.handler import api_error_handler

bp = Blueprint("api", __name__, url_prefix="/api")

api = Api(
    bp,
    version="1.0",
    title="Vehicle Rental API",
    description="Orders and payments",
    doc="/docs/",
)


@api.errorhandler(ApiError)
def handle_api_error(error):
    return api_error_handler(error)


api.add_namespace(ns=orders_ns)
api.add_namespace(ns=payment_ns)

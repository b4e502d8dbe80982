from decimal import Decimal


# Checkout pricing
TAX_RATE = Decimal("0.15")
SERVICE_FEE_PER_ITEM = Decimal("15")
MONEY_QUANTUM = Decimal("0.01")

MIN_RENTAL_DAYS = 1
MAX_RENTAL_DAYS = 30

# Local mobile numbers: 10 digits, 09xxxxxxxx or 07xxxxxxxx
PHONE_PATTERN = r"^(09|07)[0-9]{8}$"

# Payment gateway
CURRENCY = "ETB"
TX_REF_PREFIX = "vehicle-rental"
TX_REF_RANDOM_LENGTH = 9
# Chapa rejects customization titles longer than 16 characters
GATEWAY_TITLE = "Vehicle Rental"
GATEWAY_DESCRIPTION = "Vehicle rental payment"
GATEWAY_SUCCESS = "success"
WEBHOOK_SIGNATURE_HEADERS = ("Chapa-Signature", "x-chapa-signature")

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"

PAYMENT_METHODS = ["credit_card", "mobile_money", "bank_transfer", "chapa"]
DEFAULT_PAYMENT_METHOD = "chapa"

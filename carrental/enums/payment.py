from enum import Enum


class PaymentStatus(Enum):
    INITIALIZED = "INITIALIZED"  # checkout url issued, waiting for the gateway
    SUCCEEDED = "SUCCEEDED"  # verified and applied to the order
    FAILED = "FAILED"  # gateway verification reported failure
    MISMATCH = "MISMATCH"  # callback disagreed with verification, investigate
    DUPLICATE = "DUPLICATE"  # paid, but the order was already paid: refund review


SETTLED_STATUSES = {
    PaymentStatus.SUCCEEDED,
    PaymentStatus.DUPLICATE,
}


class PaymentLogType(Enum):
    INITIALIZE = "INITIALIZE"
    VERIFY = "VERIFY"
    WEBHOOK = "WEBHOOK"

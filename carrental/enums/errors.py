from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "VALIDATION"  # malformed customer/order input
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"  # caller bug, logged loudly
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"  # network/timeout, retryable
    GATEWAY_REJECTED = "GATEWAY_REJECTED"  # gateway declined the request
    VERIFICATION_MISMATCH = "VERIFICATION_MISMATCH"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    PERSISTENCE = "PERSISTENCE"


HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.GATEWAY_UNAVAILABLE: 503,
    ErrorKind.GATEWAY_REJECTED: 400,
    ErrorKind.VERIFICATION_MISMATCH: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.PERSISTENCE: 500,
}

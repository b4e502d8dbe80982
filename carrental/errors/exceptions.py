# coding: utf8
from carrental.enums.errors import HTTP_STATUS, ErrorKind


class ApiError(Exception):
    kind = ErrorKind.PERSISTENCE
    message = "Internal server error"

    def __init__(self, message=None, detail=None, kind=None):
        if kind is not None:
            self.kind = kind
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(self.message)

    @property
    def status(self):
        return HTTP_STATUS.get(self.kind, 500)

    def to_dict(self):
        data = {"success": False, "error": self.message, "kind": self.kind.value}
        if self.detail:
            data["detail"] = self.detail
        return data


class Unauthorized(ApiError):
    kind = ErrorKind.UNAUTHORIZED
    message = "Unauthorized"


class Forbidden(ApiError):
    kind = ErrorKind.FORBIDDEN
    message = "Forbidden"


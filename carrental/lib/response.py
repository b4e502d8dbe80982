class Response:

    def __init__(self, success=True, message="", data=None, status=200, **extra):
        self.success = success
        self.message = message
        self.data = data
        self.status = status
        self.extra = extra

    @classmethod
    def from_failure(cls, result):
        extra = {"kind": result.kind.value}
        if isinstance(result.detail, dict):
            extra["detail"] = result.detail
        return cls(
            success=False,
            message=result.message,
            status=result.status,
            **extra,
        )

    def to_dict(self):
        body = {"success": self.success}
        if self.success:
            if self.message:
                body["message"] = self.message
            if self.data is not None:
                body["data"] = self.data
        else:
            body["error"] = self.message
        body.update(self.extra)
        return body, self.status

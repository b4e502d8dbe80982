from carrental.enums.errors import HTTP_STATUS, ErrorKind


class Result:
    """Outcome of a domain operation.

    Either ``ok`` with a ``value``, or failed with an ``ErrorKind`` and a
    ``detail`` (a message string or a dict such as ``{"field", "reason"}``).
    Call sites are expected to branch on ``ok`` instead of catching.
    """

    __slots__ = ("ok", "value", "kind", "detail")

    def __init__(self, ok, value=None, kind=None, detail=None):
        self.ok = ok
        self.value = value
        self.kind = kind
        self.detail = detail

    @classmethod
    def success(cls, value=None):
        return cls(True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, detail=None):
        return cls(False, kind=kind, detail=detail)

    @property
    def status(self):
        if self.ok:
            return 200
        return HTTP_STATUS.get(self.kind, 500)

    @property
    def message(self):
        if isinstance(self.detail, dict):
            return self.detail.get("reason") or self.detail.get("message") or ""
        return self.detail or ""

    def __repr__(self):
        if self.ok:
            return f"Result(ok, {self.value!r})"
        return f"Result({self.kind.value}, {self.detail!r})"

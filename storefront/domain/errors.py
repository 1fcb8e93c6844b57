# storefront/domain/errors.py
from typing import Any, Dict


class ConfigError(Exception):
    """Invalid process configuration, raised at startup."""


class AppError(Exception):
    """
    Business error carrying a stable code and the HTTP status the API layer
    should answer with. `meta` holds machine-readable details (e.g. the
    variant that ran out of stock).
    """

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        http_status: int = 500,
        meta: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.meta = meta or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.meta:
            body["meta"] = self.meta
        return body

    def __repr__(self) -> str:
        return f"AppError(code={self.code!r}, http_status={self.http_status}, message={self.message!r})"

    @classmethod
    def validation(cls, message: str, code: str = "VALIDATION_ERROR", **meta):
        return cls(message, code, 422, meta)

    @classmethod
    def bad_request(cls, message: str, code: str, **meta):
        return cls(message, code, 400, meta)

    @classmethod
    def not_found(cls, message: str, code: str = "NOT_FOUND", **meta):
        return cls(message, code, 404, meta)

    @classmethod
    def conflict(cls, message: str, code: str = "CONFLICT", **meta):
        return cls(message, code, 409, meta)

    @classmethod
    def unavailable(cls, message: str, code: str = "PAYMENT_UNAVAILABLE", **meta):
        return cls(message, code, 503, meta)

"""Error taxonomy shared by repositories, gateways and services.

Every error carries an HTTP status and a machine-readable code. The API layer
renders them with `ApiError.to_dict()`:
{"message": "...", "error": "not_found", "status": 404, "cause": [...]}.
"""
from typing import List, Optional


class ApiError(Exception):
    """Base class for all errors surfaced to API callers."""

    status = 500
    code = "internal_server_error"

    def __init__(self, message: str, causes: Optional[List[str]] = None) -> None:
        self.message = message
        self.causes = list(causes or [])
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "error": self.code,
            "status": self.status,
            "cause": self.causes,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class BadRequestError(ApiError):
    status = 400
    code = "bad_request"


class UnauthorizedError(ApiError):
    status = 401
    code = "unauthorized"


class NotFoundError(ApiError):
    status = 404
    code = "not_found"


class ConflictError(ApiError):
    status = 409
    code = "conflict"


class InternalError(ApiError):
    """Store or transport failure, or a broken invariant."""

    status = 500
    code = "internal_server_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, [str(cause)] if cause is not None else None)
        self.__cause__ = cause

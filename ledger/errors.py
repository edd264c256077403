from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class FieldError:
    field: str
    message: str

    def to_payload(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class LedgerError(Exception):
    """Base class for errors the request boundary knows how to report."""

    status = 500

    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


class ValidationError(LedgerError):
    status = 400

    def __init__(self, errors: List[FieldError], msg: str = "Invalid input") -> None:
        super().__init__("VALIDATION_ERROR", msg)
        self.errors = list(errors)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([FieldError(field, message)], msg=message)


class NotFoundError(LedgerError):
    status = 404


class ConflictError(LedgerError):
    status = 409


class InternalError(LedgerError):
    status = 500

    def __init__(self, msg: str = "Storage failure", code: str = "INTERNAL_ERROR") -> None:
        super().__init__(code, msg)


def error_payload(exc: LedgerError) -> Dict[str, object]:
    body: Dict[str, object] = {"success": False, "error": exc.msg, "code": exc.code}
    errors: Optional[List[FieldError]] = getattr(exc, "errors", None)
    if errors:
        body["validationErrors"] = [error.to_payload() for error in errors]
    return body

"""Typed operation results and the error taxonomy of the lifecycle engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Every way a core operation can be refused."""

    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    INVALID_TRANSITION = "InvalidTransition"
    DUPLICATE_APPLICATION = "DuplicateApplication"
    ALREADY_STAFFED = "AlreadyStaffed"
    ALREADY_RELEASED = "AlreadyReleased"
    NO_ESCROW_FUNDS = "NoEscrowFunds"
    PAYMENT_NOT_CONFIRMED = "PaymentNotConfirmed"

    @property
    def http_status(self) -> int:
        """HTTP status code used by the API layer for this error."""
        codes = {
            ErrorKind.INVALID_INPUT: 400,
            ErrorKind.NOT_FOUND: 404,
            ErrorKind.FORBIDDEN: 403,
            ErrorKind.INVALID_TRANSITION: 409,
            ErrorKind.DUPLICATE_APPLICATION: 409,
            ErrorKind.ALREADY_STAFFED: 409,
            ErrorKind.ALREADY_RELEASED: 409,
            ErrorKind.NO_ESCROW_FUNDS: 409,
            ErrorKind.PAYMENT_NOT_CONFIRMED: 402,
        }
        return codes[self]


class MarketplaceError(Exception):
    """Raised by Result.unwrap() when the operation failed."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message


@dataclass
class Result(Generic[T]):
    """Outcome of a core operation: a value or exactly one error kind."""

    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: T = None, message: str = "") -> "Result[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, value: T = None) -> "Result[T]":
        """A refusal; value optionally carries the record left behind (e.g. a failed payment)."""
        return cls(ok=False, value=value, error=kind, message=message)

    def unwrap(self) -> T:
        """Return the value or raise MarketplaceError."""
        if not self.ok:
            raise MarketplaceError(self.error, self.message)
        return self.value

    def to_response(self) -> dict[str, Any]:
        """Serialize to the {success, data | message} shape of the API."""
        value = self.value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif isinstance(value, list):
            value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]

        if self.ok:
            return {"success": True, "data": value}

        response = {
            "success": False,
            "error": self.error.value,
            "message": self.message,
        }
        if value is not None:
            response["data"] = value
        return response

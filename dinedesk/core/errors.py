from __future__ import annotations

from typing import List, Optional


class DineDeskError(Exception):
    """Base class for errors rendered as ``{"error": ..., "details": [...]}``."""

    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload: dict = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationFailed(DineDeskError):
    status_code = 400


class NotFound(DineDeskError):
    status_code = 404


class InsufficientStockError(ValidationFailed):
    def __init__(self, shortfalls: List[str]) -> None:
        super().__init__("Insufficient stock", details=shortfalls)
        self.shortfalls = shortfalls


class DeductionFailedError(DineDeskError):
    def __init__(self) -> None:
        super().__init__("Some inventory deductions failed")


class AuthenticationFailed(DineDeskError):
    status_code = 401


class PermissionDenied(DineDeskError):
    status_code = 403

"""
Application error taxonomy.

Services raise these; ``main.py`` renders them as JSON with the mapped
status code. ``details`` is merged into the response body.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class ValidationError(AppError):
    """Malformed input: empty person name, non-positive amount, overpayment."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class BusinessLogicError(AppError):
    """Valid input but an illegal state transition."""

    status_code = 422
    code = "BUSINESS_LOGIC_ERROR"


class LimitExceededError(BusinessLogicError):
    """Free-tier ceiling reached for a limit type."""

    status_code = 403
    code = "LIMIT_EXCEEDED"

    def __init__(
        self,
        limit_type: str,
        limit: int,
        current_usage: int,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Usage limit exceeded for {limit_type}: {current_usage}/{limit}"
        self.limit_type = limit_type
        self.limit = limit
        self.current_usage = current_usage
        super().__init__(
            message,
            {"limit_type": limit_type, "limit": limit, "current_usage": current_usage},
        )


class DebtLimitExceededError(LimitExceededError):
    """Active debts ceiling reached. Callers render an upgrade prompt from it."""

    code = "DEBT_LIMIT_EXCEEDED"

    def __init__(self, limit: int, current_usage: int):
        super().__init__(
            "debts",
            limit,
            current_usage,
            message=(
                f"Active debts limit reached ({current_usage}/{limit}). "
                "Upgrade to Premium for unlimited debts."
            ),
        )

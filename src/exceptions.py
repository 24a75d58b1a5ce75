"""
Error taxonomy for the grading workflow.

Every error carries a machine readable ``code``, a human readable
``message`` and optional ``details``; the API layer turns them into a
failed ``BaseResponse`` with the matching HTTP status.

Usage:
    from src.exceptions import NotFoundError

    if not record:
        raise NotFoundError("GradeRecord", student_id)
"""

from typing import Any, Dict, Optional


class GradingError(Exception):
    """Base exception for all grading workflow errors"""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: str = "GRADING_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(GradingError):
    """Student, record, milestone or file does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": str(resource_id),
            }
        )


class ForbiddenError(GradingError):
    """Actor has no relationship to the record or lacks the capability"""

    status_code = 403

    def __init__(self, message: str = "Not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="FORBIDDEN", details=details)


class ValidationError(GradingError):
    """Out-of-range values, missing required comments, malformed input"""

    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidStateError(GradingError):
    """Transition attempted from the wrong status"""

    status_code = 409

    def __init__(self, current_status: str, action: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {action} while status is '{current_status}'",
            code="INVALID_STATE",
            details={"status": current_status, "action": action}
        )


class InvalidOperationError(GradingError):
    """Operation is never allowed on the target, whatever its state"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INVALID_OPERATION", details=details)


class LimitExceededError(GradingError):
    """A capped collection would grow past its limit"""

    status_code = 400

    def __init__(self, limit: int, current: int, requested: int):
        super().__init__(
            f"At most {limit} documents per milestone "
            f"({current} attached, {requested} requested)",
            code="LIMIT_EXCEEDED",
            details={"limit": limit, "current": current, "requested": requested}
        )


class ConflictError(GradingError):
    """Record was modified concurrently; re-read and retry"""

    status_code = 409

    def __init__(self, record_id: Any):
        super().__init__(
            f"Grade record '{record_id}' was modified by another request",
            code="CONFLICT",
            details={"record_id": str(record_id)}
        )

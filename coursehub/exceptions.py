"""
Enrollment Error Taxonomy

Every failure the enrollment core reports is one of these classes. They are
all scoped to a single operation; the HTTP boundary maps them to 4xx
responses through the `status_code` and `code` attributes.
"""
from typing import Any, Optional


class EnrollmentError(Exception):
    """Base class for all enrollment-core errors"""

    status_code = 400
    code = "ENROLLMENT_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(EnrollmentError):
    """Referenced student, course, enrollment, module or installment does not exist"""

    status_code = 404
    code = "NOT_FOUND"


class DuplicateEnrollmentError(EnrollmentError):
    """An enrollment already exists for the (student, course) pair"""

    status_code = 409
    code = "DUPLICATE_ENROLLMENT"


class InvalidInputError(EnrollmentError):
    """Malformed amortization parameters, invalid batch size, missing fields"""

    status_code = 400
    code = "INVALID_INPUT"


class InvalidTransitionError(InvalidInputError):
    """Requested status change is not allowed from the current status"""

    status_code = 409
    code = "INVALID_TRANSITION"


class AlreadyCompletedError(EnrollmentError):
    """Redundant completion request"""

    status_code = 409
    code = "ALREADY_COMPLETED"


class UnauthorizedError(EnrollmentError):
    """Actor does not own the record or the enrollment grants no access"""

    status_code = 403
    code = "UNAUTHORIZED"

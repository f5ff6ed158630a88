"""
LMS Quiz Engine
Custom exception classes for structured error handling
"""

from typing import Optional, Dict, Any
from fastapi import status


class AppException(Exception):
    """Base application exception with structured error information"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Exceptions
class AuthenticationException(AppException):
    """Raised when the bearer token is missing or cannot be verified"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_FAILED",
            details=details
        )


# Authorization Exceptions
class AuthorizationException(AppException):
    """Raised when user lacks permission for an action"""

    def __init__(
        self,
        message: str = "Access denied",
        required_roles: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if details is None:
            details = {}

        if required_roles:
            details["required_roles"] = list(required_roles)

        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="ACCESS_DENIED",
            details=details
        )


# Validation Exceptions
class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if details is None:
            details = {}

        if field:
            details["field"] = field
        if value is not None:
            details["provided_value"] = str(value)

        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            details=details
        )


# Resource Exceptions
class NotFoundException(AppException):
    """Raised when requested resource is not found"""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = str(resource_id)

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details
        )


class QuizNotFoundException(NotFoundException):
    """Raised when quiz is not found"""

    def __init__(self, quiz_id: Any):
        super().__init__(
            message="Quiz not found",
            resource_type="quiz",
            resource_id=quiz_id
        )


class QuestionNotFoundException(NotFoundException):
    """Raised when question is not found"""

    def __init__(self, question_id: Any):
        super().__init__(
            message=f"Question with ID {question_id} not found",
            resource_type="question",
            resource_id=question_id
        )


class AttemptNotFoundException(NotFoundException):
    """Raised when an attempt does not exist or belongs to another user"""

    def __init__(self, attempt_id: Any):
        super().__init__(
            message="Quiz attempt not found",
            resource_type="quiz_attempt",
            resource_id=attempt_id
        )


class LessonNotFoundException(NotFoundException):
    """Raised when lesson is not found"""

    def __init__(self, lesson_id: Any):
        super().__init__(
            message="Lesson not found",
            resource_type="lesson",
            resource_id=lesson_id
        )


# Business Logic Exceptions
class BusinessLogicException(AppException):
    """Raised when business rules are violated"""

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        error_code: str = "BUSINESS_RULE_VIOLATION",
        details: Optional[Dict[str, Any]] = None
    ):
        if details is None:
            details = {}

        if rule_name:
            details["violated_rule"] = rule_name

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details=details
        )


class AlreadyAttemptedException(BusinessLogicException):
    """Raised when the learner already has an attempt for the quiz"""

    def __init__(self, quiz_id: Any):
        super().__init__(
            message="You have already attempted this quiz",
            rule_name="one_attempt_per_quiz",
            error_code="ALREADY_ATTEMPTED",
            details={"quiz_id": str(quiz_id)}
        )


class InvalidSubmissionException(BusinessLogicException):
    """Raised when a submission cannot be graded as a whole"""

    def __init__(
        self,
        message: str,
        quiz_id: Any,
        question_id: Optional[Any] = None
    ):
        details = {"quiz_id": str(quiz_id)}
        if question_id is not None:
            details["question_id"] = str(question_id)

        super().__init__(
            message=message,
            rule_name="valid_submission",
            error_code="INVALID_SUBMISSION",
            details=details
        )


# Export all exceptions
__all__ = [
    # Base
    "AppException",

    # Identity
    "AuthenticationException",
    "AuthorizationException",

    # Validation
    "ValidationException",

    # Resources
    "NotFoundException",
    "QuizNotFoundException",
    "QuestionNotFoundException",
    "AttemptNotFoundException",
    "LessonNotFoundException",

    # Business Logic
    "BusinessLogicException",
    "AlreadyAttemptedException",
    "InvalidSubmissionException",
]

"""
Custom exceptions for the course claim platform.
"""

from typing import Optional, Any, Dict


class CourseClaimException(Exception):
    """Base exception for all course claim errors."""

    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ValidationError(CourseClaimException):
    """Raised when input validation fails."""
    default_message = "The submitted data is invalid."


class ResourceNotFoundError(CourseClaimException):
    """Raised when a referenced entity does not exist."""
    default_message = "The requested record was not found."


class AlreadyClaimedError(CourseClaimException):
    """Raised when a course is already owned by another teacher."""
    default_message = "This access code has already been claimed by another teacher."


class AlreadyEnrolledError(CourseClaimException):
    """Raised when a student is already enrolled in a course."""
    default_message = "The student is already enrolled in this course."


class ForbiddenError(CourseClaimException):
    """Raised when the actor lacks rights over the target."""
    default_message = "You are not allowed to perform this action."


class AuthenticationError(CourseClaimException):
    """Raised when no usable identity accompanies a request."""
    default_message = "A signed-in user is required."


class CodeGenerationExhaustedError(CourseClaimException):
    """Raised when every generated access code collided."""
    default_message = "Could not generate a unique access code. Please try again."


class StorageError(CourseClaimException):
    """Raised when the storage collaborator is unavailable or fails unexpectedly."""
    default_message = "The data store is currently unavailable."


class DuplicateEntityError(CourseClaimException):
    """Raised when an insert or update violates a unique constraint."""
    default_message = "A record with the same unique value already exists."

    @property
    def constraint(self) -> Optional[str]:
        return self.details.get("constraint")


class PredicateFailedError(CourseClaimException):
    """Raised when a conditional update finds the row in an unexpected state."""
    default_message = "The record was changed by someone else."


class ObservabilityError(CourseClaimException):
    """Raised when an audit write fails. Never propagated to callers."""
    default_message = "The action succeeded but could not be written to the audit log."


class ConfigurationError(CourseClaimException):
    """Raised when configuration is invalid."""
    default_message = "The platform configuration is invalid."

"""
Core module containing the domain model, interfaces and exceptions.
"""

from .entities import *
from .interfaces import *
from .exceptions import *
from .enums import *

__all__ = [
    # Entities
    "AbstractEntity",
    "IdentityContext",
    "Profile",
    "Course",
    "Enrollment",
    "AuditLogEntry",
    "new_entity_id",
    "utc_now",

    # Interfaces
    "DataAccess",
    "Row",

    # Enums
    "Role",
    "CourseState",
    "AuditAction",
    "EntityKind",
    "Table",

    # Exceptions
    "CourseClaimException",
    "ValidationError",
    "ResourceNotFoundError",
    "AlreadyClaimedError",
    "AlreadyEnrolledError",
    "ForbiddenError",
    "AuthenticationError",
    "CodeGenerationExhaustedError",
    "StorageError",
    "DuplicateEntityError",
    "PredicateFailedError",
    "ObservabilityError",
    "ConfigurationError",
]

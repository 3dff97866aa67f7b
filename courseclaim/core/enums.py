"""
Enumerations and constants for the course claim platform.
"""

from enum import Enum


class Role(Enum):
    """Roles a profile can hold."""
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class CourseState(Enum):
    """Claim state of a course."""
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"


class AuditAction(Enum):
    """Mutating actions recorded in the audit log."""
    CREATE_COURSE = "CREATE_COURSE"
    CLAIM_COURSE = "CLAIM_COURSE"
    UPDATE_COURSE = "UPDATE_COURSE"


class EntityKind(Enum):
    """Kinds of entities referenced by audit entries."""
    COURSE = "Course"
    ENROLLMENT = "Enrollment"
    PROFILE = "Profile"


class Table:
    """Table names used by the data-access layer."""
    PROFILES = "profiles"
    COURSES = "courses"
    ENROLLMENTS = "enrollments"
    AUDIT_LOGS = "audit_logs"

"""
Services module containing the course claim and enrollment workflows.
"""

from .access_codes import AccessCodeGenerator
from .audit_service import AuditRecorder
from .course_service import CourseClaimWorkflow
from .enrollment_service import EnrollmentRegistry
from .profile_service import ProfileService

__all__ = [
    "AccessCodeGenerator",
    "AuditRecorder",
    "CourseClaimWorkflow",
    "EnrollmentRegistry",
    "ProfileService",
]

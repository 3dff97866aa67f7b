"""
Course Claim: access-code course claiming and enrollment for a role-based LMS.

Administrators create courses that teachers redeem with an access code,
teachers enroll students into the courses they own, and every course
mutation is written to an append-only audit log.
"""

__version__ = "1.0.0"
__author__ = "Course Claim Development Team"
__description__ = "Course access-code claiming and enrollment core"

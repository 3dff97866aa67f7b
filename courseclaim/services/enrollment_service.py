"""
Enrollment registry linking students to claimed courses.
"""

import logging
from typing import List

from ..core.entities import Course, Enrollment, IdentityContext, new_entity_id, utc_now
from ..core.enums import Role, Table
from ..core.exceptions import (
    AlreadyEnrolledError, DuplicateEntityError, ForbiddenError, ResourceNotFoundError,
)
from ..core.interfaces import DataAccess

logger = logging.getLogger(__name__)

ENROLLMENT_CONSTRAINT = "enrollments_course_student_key"


class EnrollmentRegistry:
    """Adds and lists student-course associations.

    Duplicate enrollments are rejected by the storage unique constraint on
    (course_id, student_id); there is no read-before-write check for them.
    """

    def __init__(self, data_access: DataAccess):
        self._data_access = data_access

    def _load_course(self, course_id: str) -> Course:
        row = self._data_access.find_one(Table.COURSES, {"id": course_id})
        if row is None:
            raise ResourceNotFoundError("Course not found", details={"course_id": course_id})
        return Course.from_row(row)

    def _check_course_access(self, identity: IdentityContext, course: Course) -> None:
        if identity.is_admin or course.is_owned_by(identity.actor_id):
            return
        raise ForbiddenError("Only the teacher who claimed this course can manage its students",
                             details={"course_id": course.id})

    def enroll(self, identity: IdentityContext, course_id: str, student_id: str) -> Enrollment:
        """Enroll a student profile in a course."""
        identity.require_role(Role.TEACHER, Role.ADMIN)
        course = self._load_course(course_id)
        student = self._data_access.find_one(
            Table.PROFILES, {"id": student_id, "role": Role.STUDENT.value}
        )
        if student is None:
            raise ResourceNotFoundError("Student not found", details={"student_id": student_id})
        self._check_course_access(identity, course)

        try:
            row = self._data_access.insert_row(Table.ENROLLMENTS, {
                "id": new_entity_id(),
                "course_id": course_id,
                "student_id": student_id,
                "grade": None,
                "created_at": utc_now().isoformat(),
            })
        except DuplicateEntityError as e:
            if e.constraint != ENROLLMENT_CONSTRAINT:
                raise
            logger.warning("Student %s is already enrolled in course %s", student_id, course_id)
            raise AlreadyEnrolledError(
                details={"course_id": course_id, "student_id": student_id}
            ) from e

        enrollment = Enrollment.from_row(row)
        logger.info("Student %s enrolled in course %s by %s",
                    student_id, course_id, identity.actor_id)
        return enrollment

    def list_by_course(self, identity: IdentityContext, course_id: str) -> List[Enrollment]:
        identity.require_role(Role.TEACHER, Role.ADMIN)
        self._check_course_access(identity, self._load_course(course_id))
        rows = self._data_access.find_many(Table.ENROLLMENTS, {"course_id": course_id},
                                           order_by="created_at")
        return [Enrollment.from_row(row) for row in rows]

    def list_by_student(self, identity: IdentityContext, student_id: str) -> List[Enrollment]:
        if identity.is_student and identity.actor_id != student_id:
            raise ForbiddenError("Students can only view their own enrollments",
                                 details={"student_id": student_id})
        rows = self._data_access.find_many(Table.ENROLLMENTS, {"student_id": student_id},
                                           order_by="created_at")
        return [Enrollment.from_row(row) for row in rows]

"""
Course creation and the access-code claim workflow.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.entities import Course, IdentityContext, new_entity_id, utc_now
from ..core.enums import AuditAction, EntityKind, Role, Table
from ..core.exceptions import (
    AlreadyClaimedError, CodeGenerationExhaustedError, DuplicateEntityError,
    ForbiddenError, PredicateFailedError, ResourceNotFoundError, ValidationError,
)
from ..core.interfaces import DataAccess, Row
from .access_codes import AccessCodeGenerator
from .audit_service import AuditRecorder

logger = logging.getLogger(__name__)

ACCESS_CODE_CONSTRAINT = "courses_access_code_key"
MAX_NAME_LENGTH = 200
MAX_CODE_LENGTH = 50


def clean_course_name(name: Optional[str]) -> str:
    """Validate a course name, returning it stripped."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Course name is required", details={"field": "name"})
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Course name must be at most {MAX_NAME_LENGTH} characters",
                              details={"field": "name"})
    return name


def clean_course_code(code: Optional[str]) -> Optional[str]:
    """Blank course codes are stored as None."""
    code = (code or "").strip()
    if not code:
        return None
    if len(code) > MAX_CODE_LENGTH:
        raise ValidationError(f"Course code must be at most {MAX_CODE_LENGTH} characters",
                              details={"field": "code"})
    return code


class CourseClaimWorkflow:
    """Creates courses and moves them from unclaimed to claimed.

    Ownership changes are single conditional writes against storage, so two
    teachers redeeming the same code from separate sessions cannot both win.
    """

    def __init__(self, data_access: DataAccess, audit_recorder: AuditRecorder,
                 code_generator: Optional[AccessCodeGenerator] = None,
                 max_code_attempts: int = 3):
        if max_code_attempts < 1:
            raise ValidationError("max_code_attempts must be at least 1")
        self._data_access = data_access
        self._audit = audit_recorder
        self._code_generator = code_generator or AccessCodeGenerator()
        self._max_code_attempts = max_code_attempts

    # --- creation ------------------------------------------------------

    def create_course(self, identity: IdentityContext, name: str,
                      code: Optional[str] = None) -> Course:
        """Administrator path: create an unclaimed course with a fresh access code."""
        identity.require_role(Role.ADMIN)
        return self._create(identity, name, code, owner_id=None)

    def create_and_claim_course(self, identity: IdentityContext, name: str,
                                code: Optional[str] = None) -> Course:
        """Teacher self-service path: the course is claimed from creation."""
        identity.require_role(Role.TEACHER)
        return self._create(identity, name, code, owner_id=identity.actor_id)

    def _create(self, identity: IdentityContext, name: str, code: Optional[str],
                owner_id: Optional[str]) -> Course:
        name = clean_course_name(name)
        code = clean_course_code(code)
        course_id = new_entity_id()

        def insert(access_code: str) -> Row:
            now = utc_now().isoformat()
            return self._data_access.insert_row(Table.COURSES, {
                "id": course_id,
                "name": name,
                "code": code,
                "access_code": access_code,
                "teacher_id": owner_id,
                "created_at": now,
                "updated_at": now,
            })

        course = Course.from_row(self._with_fresh_access_code(insert))
        logger.info("Course %s created by %s (%s)", course.id, identity.actor_id, course.state.value)
        self._audit.record(identity.actor_id, AuditAction.CREATE_COURSE, EntityKind.COURSE,
                           course.id, {"name": name, "code": code,
                                       "access_code": course.access_code})
        return course

    def _with_fresh_access_code(self, write: Callable[[str], Row]) -> Row:
        """Run ``write`` with generated codes until one is accepted by storage."""
        for attempt in range(1, self._max_code_attempts + 1):
            access_code = self._code_generator.generate()
            try:
                return write(access_code)
            except DuplicateEntityError as e:
                if e.constraint != ACCESS_CODE_CONSTRAINT:
                    raise
                logger.warning("Access code collision on attempt %d/%d",
                               attempt, self._max_code_attempts)
        raise CodeGenerationExhaustedError(
            f"All {self._max_code_attempts} generated access codes were already taken",
            details={"attempts": self._max_code_attempts},
        )

    # --- claiming and updating -----------------------------------------

    def claim_course(self, identity: IdentityContext, access_code: str,
                     name: Optional[str] = None, code: Optional[str] = None) -> Course:
        """Redeem an access code.

        When ``name`` is given, name and code are written together with the
        claim. A claim by the current owner is treated as an update.
        """
        identity.require_role(Role.TEACHER)
        access_code = (access_code or "").strip()
        if not access_code:
            raise ValidationError("Access code is required", details={"field": "access_code"})
        if name is not None:
            name = clean_course_name(name)
            code = clean_course_code(code)

        row = self._data_access.find_one(Table.COURSES, {"access_code": access_code})
        if row is None:
            raise ResourceNotFoundError("Invalid access code",
                                        details={"access_code": access_code})
        course = Course.from_row(row)

        if course.is_owned_by(identity.actor_id):
            return self._reclaim(identity, course, name, code)
        if course.is_claimed:
            logger.warning("Teacher %s tried to claim course %s owned by another teacher",
                           identity.actor_id, course.id)
            raise AlreadyClaimedError(details={"course_id": course.id})

        values: Dict[str, Any] = {"teacher_id": identity.actor_id,
                                  "updated_at": utc_now().isoformat()}
        if name is not None:
            values.update({"name": name, "code": code})

        try:
            row = self._data_access.update_row_if(
                Table.COURSES, course.id,
                {"teacher_id": None, "access_code": access_code},
                values,
            )
        except PredicateFailedError:
            return self._resolve_lost_claim(identity, course.id, name, code)

        claimed = Course.from_row(row)
        logger.info("Course %s claimed by %s", claimed.id, identity.actor_id)
        self._audit.record(identity.actor_id, AuditAction.CLAIM_COURSE, EntityKind.COURSE,
                           claimed.id, {"name": claimed.name, "code": claimed.code})
        return claimed

    def _resolve_lost_claim(self, identity: IdentityContext, course_id: str,
                            name: Optional[str], code: Optional[str]) -> Course:
        """The conditional claim write matched nothing; find out why."""
        current = self._load_course(course_id)
        if current.is_owned_by(identity.actor_id):
            return self._reclaim(identity, current, name, code)
        if current.is_claimed:
            logger.warning("Teacher %s lost the claim race for course %s",
                           identity.actor_id, course_id)
            raise AlreadyClaimedError(details={"course_id": course_id})
        raise ResourceNotFoundError("Invalid access code", details={"course_id": course_id})

    def _reclaim(self, identity: IdentityContext, course: Course,
                 name: Optional[str], code: Optional[str]) -> Course:
        if name is None:
            return course
        return self._apply_update(identity, course, name, code)

    def update_course(self, identity: IdentityContext, course_id: str, name: str,
                      code: Optional[str] = None) -> Course:
        """Owner edits name and code of a claimed course."""
        identity.require_role(Role.TEACHER)
        name = clean_course_name(name)
        code = clean_course_code(code)
        course = self._load_course(course_id)
        if not course.is_owned_by(identity.actor_id):
            raise ForbiddenError("Only the owning teacher can update this course",
                                 details={"course_id": course_id})
        return self._apply_update(identity, course, name, code)

    def _apply_update(self, identity: IdentityContext, course: Course, name: str,
                      code: Optional[str]) -> Course:
        try:
            row = self._data_access.update_row_if(
                Table.COURSES, course.id,
                {"teacher_id": identity.actor_id},
                {"name": name, "code": code, "updated_at": utc_now().isoformat()},
            )
        except PredicateFailedError as e:
            raise ForbiddenError("Only the owning teacher can update this course",
                                 details={"course_id": course.id}) from e
        updated = Course.from_row(row)
        logger.info("Course %s updated by %s", updated.id, identity.actor_id)
        self._audit.record(identity.actor_id, AuditAction.UPDATE_COURSE, EntityKind.COURSE,
                           updated.id, {"name": name, "code": code})
        return updated

    def regenerate_access_code(self, identity: IdentityContext, course_id: str) -> str:
        """Replace a course's access code regardless of its claim state."""
        identity.require_role(Role.ADMIN)

        def overwrite(access_code: str) -> Row:
            return self._data_access.update_row_if(
                Table.COURSES, course_id, {},
                {"access_code": access_code, "updated_at": utc_now().isoformat()},
            )

        course = Course.from_row(self._with_fresh_access_code(overwrite))
        logger.info("Access code regenerated for course %s by %s", course.id, identity.actor_id)
        return course.access_code

    # --- queries -------------------------------------------------------

    def _load_course(self, course_id: str) -> Course:
        row = self._data_access.find_one(Table.COURSES, {"id": course_id})
        if row is None:
            raise ResourceNotFoundError("Course not found", details={"course_id": course_id})
        return Course.from_row(row)

    def get_course(self, identity: IdentityContext, course_id: str) -> Course:
        """Admins see any course, teachers their own, students those they attend."""
        course = self._load_course(course_id)
        if identity.is_admin or course.is_owned_by(identity.actor_id):
            return course
        if identity.is_student and self._data_access.find_one(
                Table.ENROLLMENTS, {"course_id": course_id, "student_id": identity.actor_id}):
            return course
        raise ForbiddenError("You do not have access to this course",
                             details={"course_id": course_id})

    def list_courses(self, identity: IdentityContext) -> List[Course]:
        identity.require_role(Role.ADMIN)
        rows = self._data_access.find_many(Table.COURSES, order_by="created_at", descending=True)
        return [Course.from_row(row) for row in rows]

    def list_teacher_courses(self, identity: IdentityContext) -> List[Course]:
        identity.require_role(Role.TEACHER)
        rows = self._data_access.find_many(Table.COURSES, {"teacher_id": identity.actor_id},
                                           order_by="created_at", descending=True)
        return [Course.from_row(row) for row in rows]

    def search_courses(self, identity: IdentityContext, query: str) -> List[Course]:
        """Match name or code; teachers only search their own courses."""
        query = (query or "").strip()
        if not query:
            return []
        filters = {"teacher_id": identity.actor_id} if identity.is_teacher else None
        rows = self._data_access.search_rows(Table.COURSES, ("name", "code"), query, filters)
        return [Course.from_row(row) for row in rows]

import pytest

from courseclaim.core.enums import Role, Table
from courseclaim.core.exceptions import (
    AlreadyEnrolledError, ForbiddenError, ResourceNotFoundError,
)


@pytest.fixture()
def claimed_course(workflow, admin, teacher_a):
    course = workflow.create_course(admin, "Databases 101", "DB101")
    return workflow.claim_course(teacher_a, course.access_code)


def test_owner_enrolls_student(registry, claimed_course, teacher_a, student):
    enrollment = registry.enroll(teacher_a, claimed_course.id, student.id)

    assert enrollment.course_id == claimed_course.id
    assert enrollment.student_id == student.id
    assert enrollment.grade is None


def test_duplicate_enrollment_is_rejected(registry, database, claimed_course, teacher_a, student):
    registry.enroll(teacher_a, claimed_course.id, student.id)

    with pytest.raises(AlreadyEnrolledError):
        registry.enroll(teacher_a, claimed_course.id, student.id)

    rows = database.find_many(Table.ENROLLMENTS, {"course_id": claimed_course.id})
    assert len(rows) == 1


def test_admin_may_enroll_into_any_course(registry, workflow, admin, student):
    course = workflow.create_course(admin, "Unclaimed")

    enrollment = registry.enroll(admin, course.id, student.id)

    assert enrollment.course_id == course.id


def test_other_teacher_cannot_enroll(registry, claimed_course, teacher_b, student):
    with pytest.raises(ForbiddenError):
        registry.enroll(teacher_b, claimed_course.id, student.id)


def test_teacher_cannot_enroll_into_unclaimed_course(registry, workflow, admin, teacher_a,
                                                     student):
    course = workflow.create_course(admin, "Unclaimed")

    with pytest.raises(ForbiddenError):
        registry.enroll(teacher_a, course.id, student.id)


def test_students_cannot_enroll_others(registry, claimed_course, student):
    with pytest.raises(ForbiddenError):
        registry.enroll(student.identity(), claimed_course.id, student.id)


def test_missing_course_or_student(registry, claimed_course, teacher_a, teacher_b, student):
    with pytest.raises(ResourceNotFoundError):
        registry.enroll(teacher_a, "missing", student.id)
    with pytest.raises(ResourceNotFoundError):
        registry.enroll(teacher_a, claimed_course.id, "missing")
    # teachers are not enrollable
    with pytest.raises(ResourceNotFoundError):
        registry.enroll(teacher_a, claimed_course.id, teacher_b.actor_id)


def test_listing_enrollments(registry, profiles, admin, claimed_course, teacher_a, teacher_b,
                             student):
    other = profiles.create_profile(admin, "other.student@example.edu", Role.STUDENT)
    registry.enroll(teacher_a, claimed_course.id, student.id)
    registry.enroll(teacher_a, claimed_course.id, other.id)

    by_course = registry.list_by_course(teacher_a, claimed_course.id)
    assert {e.student_id for e in by_course} == {student.id, other.id}
    assert len(registry.list_by_course(admin, claimed_course.id)) == 2
    with pytest.raises(ForbiddenError):
        registry.list_by_course(teacher_b, claimed_course.id)

    mine = registry.list_by_student(student.identity(), student.id)
    assert [e.course_id for e in mine] == [claimed_course.id]
    with pytest.raises(ForbiddenError):
        registry.list_by_student(student.identity(), other.id)

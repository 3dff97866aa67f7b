"""
Script to add sample data to the course claim platform via the REST API.
Make sure the server is running before executing this script.

Usage:
    python -m courseclaim.main --bootstrap-admin admin@example.edu
    COURSECLAIM_ADMIN_ID=<admin profile id> python scripts/seed_data.py
"""

import os
import sys

import requests


def _console_supports_utf8() -> bool:
    enc = getattr(sys.stdout, "encoding", None)
    return enc is not None and "utf" in enc.lower()


_OK_CHAR = "✓" if _console_supports_utf8() else "[OK]"
_FAIL_CHAR = "✗" if _console_supports_utf8() else "[FAIL]"
_INFO_CHAR = "ℹ" if _console_supports_utf8() else "[INFO]"

BASE_URL = os.environ.get("COURSECLAIM_BASE_URL", "http://127.0.0.1:8000")
TIMEOUT = 5


def _headers(actor_id):
    return {"X-Actor-Id": actor_id}


def check_server():
    """Check if the server is running."""
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=2)
        if response.status_code == 200:
            print(f"{_OK_CHAR} Server is running at {BASE_URL}")
            return True
    except requests.exceptions.RequestException:
        pass
    print(f"{_FAIL_CHAR} Server is not running!")
    print("\nPlease start the server first:")
    print("  python -m courseclaim.main --rest-port 8000")
    return False


def _post(path, actor_id, data, expected=201):
    try:
        response = requests.post(f"{BASE_URL}{path}", json=data, headers=_headers(actor_id),
                                 timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        print(f"{_FAIL_CHAR} Request to {path} failed: {e}")
        return None
    if response.status_code != expected:
        message = response.json().get("message", response.text)
        print(f"{_FAIL_CHAR} {path}: {message}")
        return None
    return response.json()


def create_profile(admin_id, email, role, **extra):
    """Create a student or teacher profile."""
    profile = _post("/profiles", admin_id, {"email": email, "role": role, **extra})
    if profile:
        print(f"{_OK_CHAR} Created {role}: {email} ({profile['id']})")
    return profile


def create_course(admin_id, name, code=None):
    """Create an unclaimed course."""
    course = _post("/courses", admin_id, {"name": name, "code": code})
    if course:
        print(f"{_OK_CHAR} Created course: {name} -> access code {course['access_code']}")
    return course


def claim_course(teacher_id, access_code):
    """Claim a course as a teacher."""
    course = _post("/courses/claim", teacher_id, {"access_code": access_code}, expected=200)
    if course:
        print(f"{_OK_CHAR} Teacher {teacher_id} claimed {course['name']}")
    return course


def enroll_student(teacher_id, course_id, student_id):
    """Enroll a student in a course."""
    enrollment = _post(f"/courses/{course_id}/enrollments", teacher_id,
                       {"student_id": student_id})
    if enrollment:
        print(f"{_OK_CHAR} Enrolled student {student_id} in course {course_id}")
    return enrollment


def list_courses(admin_id):
    """List all courses."""
    response = requests.get(f"{BASE_URL}/courses", headers=_headers(admin_id), timeout=TIMEOUT)
    if response.status_code != 200:
        print(f"{_FAIL_CHAR} Failed to list courses: {response.text}")
        return []
    courses = response.json()
    print(f"\n{'=' * 60}")
    print(f"Courses ({len(courses)})")
    print(f"{'=' * 60}")
    for course in courses:
        owner = course['teacher_id'] or "-"
        print(f"  {course['access_code']:24} | {course['state']:9} | {owner:32} | {course['name']}")
    return courses


def main():
    admin_id = os.environ.get("COURSECLAIM_ADMIN_ID")
    if not admin_id:
        print(f"{_FAIL_CHAR} Set COURSECLAIM_ADMIN_ID to an administrator profile id")
        return 1
    if not check_server():
        return 1

    print(f"\n{_INFO_CHAR} Creating profiles...")
    teachers = [
        create_profile(admin_id, "ayesha.khan@example.edu", "teacher", teacher_id="T-1001"),
        create_profile(admin_id, "bilal.ahmed@example.edu", "teacher", teacher_id="T-1002"),
    ]
    students = [
        create_profile(admin_id, "sara.ali@example.edu", "student", voucher_number="V-2001"),
        create_profile(admin_id, "omar.farooq@example.edu", "student", voucher_number="V-2002"),
        create_profile(admin_id, "hina.raza@example.edu", "student", voucher_number="V-2003"),
    ]

    print(f"\n{_INFO_CHAR} Creating courses...")
    courses = [
        create_course(admin_id, "Databases 101", "DB101"),
        create_course(admin_id, "Web Development Fundamentals", "WEB110"),
        create_course(admin_id, "Graphic Design Basics"),
    ]

    print(f"\n{_INFO_CHAR} Claiming courses and enrolling students...")
    for teacher, course in zip(teachers, courses):
        if not teacher or not course:
            continue
        if claim_course(teacher["id"], course["access_code"]):
            for student in students:
                if student:
                    enroll_student(teacher["id"], course["id"], student["id"])

    list_courses(admin_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())

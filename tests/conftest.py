from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from courseclaim.core.entities import IdentityContext, Profile
from courseclaim.core.enums import Role
from courseclaim.core.interfaces import DataAccess, Row
from courseclaim.persistence import SQLiteDatabase
from courseclaim.services import (
    AccessCodeGenerator, AuditRecorder, CourseClaimWorkflow, EnrollmentRegistry, ProfileService,
)


class ScriptedCodeGenerator(AccessCodeGenerator):
    """Hands out a fixed sequence of access codes."""

    def __init__(self, codes: Iterable[str]):
        super().__init__()
        self._codes = list(codes)
        self.calls = 0

    def generate(self) -> str:
        code = self._codes[min(self.calls, len(self._codes) - 1)]
        self.calls += 1
        return code


class DelegatingDataAccess(DataAccess):
    """Wraps a real backend so tests can intercept individual calls."""

    def __init__(self, inner: DataAccess):
        self.inner = inner

    def insert_row(self, table: str, values: Dict[str, Any]) -> Row:
        return self.inner.insert_row(table, values)

    def update_row_if(self, table: str, row_id: str, predicate: Dict[str, Any],
                      values: Dict[str, Any]) -> Row:
        return self.inner.update_row_if(table, row_id, predicate, values)

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Row]:
        return self.inner.find_one(table, filters)

    def find_many(self, table: str, filters: Optional[Dict[str, Any]] = None,
                  order_by: Optional[str] = None, descending: bool = False,
                  limit: Optional[int] = None) -> List[Row]:
        return self.inner.find_many(table, filters, order_by, descending, limit)

    def search_rows(self, table: str, columns: Sequence[str], term: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Row]:
        return self.inner.search_rows(table, columns, term, filters)


@pytest.fixture()
def database(tmp_path: Path) -> SQLiteDatabase:
    return SQLiteDatabase(str(tmp_path / "courseclaim.db"))


@pytest.fixture()
def audit(database: SQLiteDatabase) -> AuditRecorder:
    return AuditRecorder(database)


@pytest.fixture()
def profiles(database: SQLiteDatabase) -> ProfileService:
    return ProfileService(database)


@pytest.fixture()
def workflow(database: SQLiteDatabase, audit: AuditRecorder) -> CourseClaimWorkflow:
    return CourseClaimWorkflow(database, audit)


@pytest.fixture()
def registry(database: SQLiteDatabase) -> EnrollmentRegistry:
    return EnrollmentRegistry(database)


@pytest.fixture()
def admin(profiles: ProfileService) -> IdentityContext:
    return profiles.bootstrap_admin("admin@example.edu").identity()


@pytest.fixture()
def teacher_a(profiles: ProfileService, admin: IdentityContext) -> IdentityContext:
    return profiles.create_profile(admin, "teacher.a@example.edu", Role.TEACHER).identity()


@pytest.fixture()
def teacher_b(profiles: ProfileService, admin: IdentityContext) -> IdentityContext:
    return profiles.create_profile(admin, "teacher.b@example.edu", Role.TEACHER).identity()


@pytest.fixture()
def student(profiles: ProfileService, admin: IdentityContext) -> Profile:
    return profiles.create_profile(admin, "student@example.edu", Role.STUDENT,
                                   voucher_number="V-100")

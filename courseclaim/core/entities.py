"""
Core entities for the course claim platform.

Entities are read-only views over storage rows. Services build row values,
hand them to the data-access layer and wrap whatever comes back with
``from_row``; nothing in this module talks to storage directly.
"""

import uuid
from abc import ABC
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .enums import AuditAction, CourseState, Role
from .exceptions import ForbiddenError, ValidationError


def new_entity_id() -> str:
    """Generate an opaque entity id."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class IdentityContext:
    """The current actor, passed explicitly into every core operation."""

    actor_id: str
    role: Role

    def __post_init__(self):
        if not self.actor_id:
            raise ValidationError("An identity requires an actor id")
        if not isinstance(self.role, Role):
            raise ValidationError(f"Unknown role: {self.role!r}")

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role is Role.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role is Role.STUDENT

    def require_role(self, *roles: Role) -> None:
        """Raise ForbiddenError unless the actor holds one of ``roles``."""
        if self.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise ForbiddenError(
                f"This action requires one of the roles: {allowed}",
                details={"actor_id": self.actor_id, "role": self.role.value},
            )


class AbstractEntity(ABC):
    """Base entity with an id and a creation timestamp."""

    def __init__(self, entity_id: str, created_at: Optional[datetime] = None):
        self._id = entity_id
        self._created_at = created_at or utc_now()

    @property
    def id(self) -> str:
        return self._id

    @property
    def created_at(self) -> datetime:
        return self._created_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to dictionary."""
        return {
            'id': self._id,
            'created_at': self._created_at.isoformat(),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AbstractEntity):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._id))

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id})"

    def __repr__(self) -> str:
        return str(self)


class Profile(AbstractEntity):
    """A user profile as provisioned by an administrator."""

    def __init__(self, entity_id: str, email: str, role: Role, phone: Optional[str] = None,
                 teacher_id: Optional[str] = None, voucher_number: Optional[str] = None,
                 username: Optional[str] = None, created_at: Optional[datetime] = None):
        super().__init__(entity_id, created_at)
        self._email = email
        self._role = role
        self._phone = phone
        self._teacher_id = teacher_id
        self._voucher_number = voucher_number
        self._username = username

    @property
    def email(self) -> str:
        return self._email

    @property
    def role(self) -> Role:
        return self._role

    @property
    def phone(self) -> Optional[str]:
        return self._phone

    @property
    def teacher_id(self) -> Optional[str]:
        """Staff number for teachers; not a profile reference."""
        return self._teacher_id

    @property
    def voucher_number(self) -> Optional[str]:
        return self._voucher_number

    @property
    def username(self) -> Optional[str]:
        return self._username

    def identity(self) -> IdentityContext:
        return IdentityContext(actor_id=self._id, role=self._role)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Profile":
        return cls(
            entity_id=row["id"],
            email=row["email"],
            role=Role(row["role"]),
            phone=row.get("phone"),
            teacher_id=row.get("teacher_id"),
            voucher_number=row.get("voucher_number"),
            username=row.get("username"),
            created_at=_parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'email': self._email,
            'role': self._role.value,
            'phone': self._phone,
            'teacher_id': self._teacher_id,
            'voucher_number': self._voucher_number,
            'username': self._username,
        })
        return base_dict


class Course(AbstractEntity):
    """A course that is either unclaimed or owned by exactly one teacher."""

    def __init__(self, entity_id: str, name: str, access_code: str,
                 code: Optional[str] = None, teacher_id: Optional[str] = None,
                 created_at: Optional[datetime] = None,
                 updated_at: Optional[datetime] = None):
        super().__init__(entity_id, created_at)
        self._name = name
        self._code = code
        self._access_code = access_code
        self._teacher_id = teacher_id
        self._updated_at = updated_at or self._created_at

    @property
    def name(self) -> str:
        return self._name

    @property
    def code(self) -> Optional[str]:
        return self._code

    @property
    def access_code(self) -> str:
        return self._access_code

    @property
    def teacher_id(self) -> Optional[str]:
        """Owning teacher profile id, None while unclaimed."""
        return self._teacher_id

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def state(self) -> CourseState:
        return CourseState.UNCLAIMED if self._teacher_id is None else CourseState.CLAIMED

    @property
    def is_claimed(self) -> bool:
        return self._teacher_id is not None

    def is_owned_by(self, actor_id: str) -> bool:
        return self._teacher_id is not None and self._teacher_id == actor_id

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Course":
        return cls(
            entity_id=row["id"],
            name=row["name"],
            code=row.get("code"),
            access_code=row["access_code"],
            teacher_id=row.get("teacher_id"),
            created_at=_parse_timestamp(row.get("created_at")),
            updated_at=_parse_timestamp(row.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'name': self._name,
            'code': self._code,
            'access_code': self._access_code,
            'teacher_id': self._teacher_id,
            'state': self.state.value,
            'updated_at': self._updated_at.isoformat(),
        })
        return base_dict


class Enrollment(AbstractEntity):
    """Association of one student with one course."""

    def __init__(self, entity_id: str, course_id: str, student_id: str,
                 grade: Optional[str] = None, created_at: Optional[datetime] = None):
        super().__init__(entity_id, created_at)
        self._course_id = course_id
        self._student_id = student_id
        self._grade = grade

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def grade(self) -> Optional[str]:
        return self._grade

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Enrollment":
        return cls(
            entity_id=row["id"],
            course_id=row["course_id"],
            student_id=row["student_id"],
            grade=row.get("grade"),
            created_at=_parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'course_id': self._course_id,
            'student_id': self._student_id,
            'grade': self._grade,
        })
        return base_dict


class AuditLogEntry(AbstractEntity):
    """Immutable audit log entry."""

    def __init__(self, entity_id: str, actor_id: str, action: AuditAction, entity_kind: str,
                 target_id: Optional[str], details: Dict[str, Any],
                 created_at: Optional[datetime] = None):
        super().__init__(entity_id, created_at)
        self._actor_id = actor_id
        self._action = action
        self._entity_kind = entity_kind
        self._target_id = target_id
        self._details = dict(details)

    @property
    def actor_id(self) -> str:
        return self._actor_id

    @property
    def action(self) -> AuditAction:
        return self._action

    @property
    def entity_kind(self) -> str:
        return self._entity_kind

    @property
    def target_id(self) -> Optional[str]:
        return self._target_id

    @property
    def details(self) -> Dict[str, Any]:
        return dict(self._details)

    @property
    def timestamp(self) -> datetime:
        return self._created_at

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AuditLogEntry":
        return cls(
            entity_id=row["id"],
            actor_id=row["actor_id"],
            action=AuditAction(row["action"]),
            entity_kind=row["entity"],
            target_id=row.get("entity_id"),
            details=row.get("details") or {},
            created_at=_parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'actor_id': self._actor_id,
            'action': self._action.value,
            'entity': self._entity_kind,
            'entity_id': self._target_id,
            'details': dict(self._details),
        })
        return base_dict

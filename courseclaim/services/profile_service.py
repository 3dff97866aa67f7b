"""
Profile directory used to provision users and resolve identities.
"""

import logging
import re
from typing import List, Optional

from ..core.entities import IdentityContext, Profile, new_entity_id, utc_now
from ..core.enums import Role, Table
from ..core.exceptions import (
    AuthenticationError, DuplicateEntityError, ResourceNotFoundError, ValidationError,
)
from ..core.interfaces import DataAccess

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class ProfileService:
    """Administrator-managed user profiles."""

    def __init__(self, data_access: DataAccess):
        self._data_access = data_access

    def create_profile(self, identity: IdentityContext, email: str, role: Role,
                       phone: Optional[str] = None, teacher_id: Optional[str] = None,
                       voucher_number: Optional[str] = None,
                       username: Optional[str] = None) -> Profile:
        """Provision a student or teacher profile."""
        identity.require_role(Role.ADMIN)
        return self._insert(email, role, phone, teacher_id, voucher_number, username)

    def bootstrap_admin(self, email: str, username: Optional[str] = None) -> Profile:
        """Create an administrator profile outside of any request."""
        return self._insert(email, Role.ADMIN, None, None, None, username,
                            allow_admin=True)

    def _insert(self, email: str, role: Role, phone: Optional[str],
                teacher_id: Optional[str], voucher_number: Optional[str],
                username: Optional[str], allow_admin: bool = False) -> Profile:
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Valid email is required", details={"field": "email"})
        if not isinstance(role, Role):
            raise ValidationError(f"Unknown role: {role!r}", details={"field": "role"})
        if role is Role.ADMIN and not allow_admin:
            raise ValidationError("Administrators cannot be created here",
                                  details={"field": "role"})

        try:
            row = self._data_access.insert_row(Table.PROFILES, {
                "id": new_entity_id(),
                "email": email,
                "role": role.value,
                "phone": (phone or "").strip() or None,
                "teacher_id": (teacher_id or "").strip() or None,
                "voucher_number": (voucher_number or "").strip() or None,
                "username": (username or "").strip() or None,
                "created_at": utc_now().isoformat(),
            })
        except DuplicateEntityError as e:
            raise DuplicateEntityError("A user with this email already exists",
                                       details=e.details) from e

        profile = Profile.from_row(row)
        logger.info("Profile %s created with role %s", profile.id, role.value)
        return profile

    def get_profile(self, profile_id: str) -> Profile:
        row = self._data_access.find_one(Table.PROFILES, {"id": profile_id})
        if row is None:
            raise ResourceNotFoundError("Profile not found", details={"profile_id": profile_id})
        return Profile.from_row(row)

    def list_profiles(self, identity: IdentityContext, role: Optional[Role] = None) -> List[Profile]:
        identity.require_role(Role.ADMIN)
        filters = {"role": role.value} if role else None
        rows = self._data_access.find_many(Table.PROFILES, filters,
                                           order_by="created_at", descending=True)
        return [Profile.from_row(row) for row in rows]

    def resolve_identity(self, actor_id: Optional[str]) -> IdentityContext:
        """Build the identity context for an authenticated actor id."""
        if not actor_id:
            raise AuthenticationError()
        row = self._data_access.find_one(Table.PROFILES, {"id": actor_id})
        if row is None:
            raise AuthenticationError("Unknown user", details={"actor_id": actor_id})
        return Profile.from_row(row).identity()

"""Request identity.

Authentication happens upstream; this service only receives an opaque
subject id and role in the X-User-Id / X-User-Role headers.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status

from coursework.models.user import ROLES


@dataclass(frozen=True)
class Identity:
    subject_id: int
    role: str

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_administrator(self) -> bool:
        return self.role == "administrator"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> Identity:
    if not x_user_id or not x_user_role:
        raise _unauthorized("Not authenticated")

    try:
        subject_id = int(x_user_id.strip())
    except ValueError:
        raise _unauthorized("Invalid X-User-Id header")

    role = x_user_role.strip().lower()
    if role not in ROLES:
        raise _unauthorized("Invalid X-User-Role header")

    return Identity(subject_id=subject_id, role=role)

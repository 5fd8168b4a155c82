from fastapi import Depends, HTTPException, status

from coursework.core.current_user import Identity, get_identity


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require_teacher(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_teacher:
        raise _forbidden("Teacher role required")
    return identity


def require_student(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_student:
        raise _forbidden("Student role required")
    return identity


def require_staff(identity: Identity = Depends(get_identity)) -> Identity:
    if not (identity.is_teacher or identity.is_administrator):
        raise _forbidden("Teacher or administrator role required")
    return identity


def require_administrator(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_administrator:
        raise _forbidden("Administrator role required")
    return identity

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coursework.core.current_user import Identity, get_identity
from coursework.core.deps import get_db
from coursework.core.errors import UserNotFound, ValidationError
from coursework.core.permissions import require_administrator
from coursework.models.user import User
from coursework.schemas.user import UserCreate, UserRead

router = APIRouter()


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Email already registered"},
    },
)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    _admin: Identity = Depends(require_administrator),
):
    existing_user = db.query(User).filter(User.email == payload.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    if payload.teacher_id is not None:
        if payload.role != "student":
            raise ValidationError("only students can be assigned to a teacher")
        teacher = db.query(User).filter(User.id == payload.teacher_id).first()
        if not teacher:
            raise UserNotFound(f"user {payload.teacher_id} not found")
        if teacher.role != "teacher":
            raise ValidationError(f"user {payload.teacher_id} is not a teacher")

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
        teacher_id=payload.teacher_id,
    )
    db.add(user)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


@router.get("/me", response_model=UserRead)
def me(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == identity.subject_id).first()
    if not user:
        raise UserNotFound(f"user {identity.subject_id} not found")
    return user

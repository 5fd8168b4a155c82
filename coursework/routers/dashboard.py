from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from coursework.core.clock import Clock, get_clock
from coursework.core.current_user import Identity
from coursework.core.deps import get_db
from coursework.core.permissions import require_student, require_teacher
from coursework.schemas.dashboard import StudentDashboard, TeacherDashboard
from coursework.services import dashboard_service

router = APIRouter()


@router.get("/teacher", response_model=TeacherDashboard)
def teacher_dashboard(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_teacher),
):
    return dashboard_service.teacher_dashboard(db, me.subject_id)


@router.get("/student", response_model=StudentDashboard)
def student_dashboard(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_student),
):
    return dashboard_service.student_dashboard(db, me.subject_id, clock())

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from coursework.core.current_user import Identity
from coursework.core.deps import get_db
from coursework.core.permissions import require_student, require_teacher
from coursework.schemas.grades import StudentGradeStats, TeacherGradeStats
from coursework.services import grade_stats_service

router = APIRouter()


@router.get("/teacher", response_model=TeacherGradeStats)
def teacher_grades(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_teacher),
):
    return grade_stats_service.teacher_grade_stats(db, me.subject_id)


@router.get("/student", response_model=StudentGradeStats)
def student_grades(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_student),
):
    return grade_stats_service.student_grade_stats(db, me.subject_id)

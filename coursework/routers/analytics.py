from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from coursework.core.clock import Clock, get_clock
from coursework.core.config import DEFAULT_ACTIVITY_WEEKS
from coursework.core.current_user import Identity
from coursework.core.deps import get_db
from coursework.core.permissions import require_staff
from coursework.schemas.analytics import (
    AnalyticsCsvBundle,
    QuizTopicPerformanceRow,
    TeacherAnalytics,
    TimelinessReport,
    WeeklyActivityRow,
)
from coursework.services import analytics_service, export

router = APIRouter()


def _scope(me: Identity) -> Optional[int]:
    # teachers see their own tasks, administrators see everything
    return me.subject_id if me.is_teacher else None


def _csv(body: str, name: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{name}.csv"'},
    )


@router.get("", response_model=TeacherAnalytics)
def overview(
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    return analytics_service.teacher_analytics(db, clock(), owner_id=_scope(me), weeks=weeks)


@router.get("/quiz-performance", response_model=list[QuizTopicPerformanceRow])
def quiz_performance(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_staff),
):
    return analytics_service.quiz_performance_by_topic(db, owner_id=_scope(me))


@router.get("/quiz-performance/export")
def quiz_performance_export(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_staff),
):
    return _csv(export.export_quiz_performance_csv(db, owner_id=_scope(me)), "quiz-performance")


@router.get("/timeliness", response_model=TimelinessReport)
def timeliness(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    return analytics_service.submission_timeliness(db, clock(), owner_id=_scope(me))


@router.get("/timeliness/export")
def timeliness_export(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    return _csv(export.export_timeliness_csv(db, clock(), owner_id=_scope(me)), "timeliness")


@router.get("/weekly-activity", response_model=list[WeeklyActivityRow])
def weekly_activity(
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    return analytics_service.weekly_content_activity(db, clock(), weeks=weeks, owner_id=_scope(me))


@router.get("/weekly-activity/export")
def weekly_activity_export(
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    body = export.export_weekly_activity_csv(db, clock(), weeks=weeks, owner_id=_scope(me))
    return _csv(body, "weekly-activity")


@router.get("/export", response_model=AnalyticsCsvBundle)
def export_all(
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    return export.export_all_analytics_csv(db, clock(), owner_id=_scope(me), weeks=weeks)

import csv
import io
from datetime import datetime
from typing import Iterable, Optional, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

from coursework.core.config import DEFAULT_ACTIVITY_WEEKS
from coursework.schemas.analytics import (
    AnalyticsCsvBundle,
    QuizTopicPerformanceRow,
    TimelinessReport,
    TimelinessRow,
    WeeklyActivityRow,
)
from coursework.services import analytics_service

TOTAL_CATEGORY = "TOTAL"


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set)):
        return "; ".join(str(v) for v in value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def rows_to_csv(rows: Iterable[BaseModel], row_model: Type[BaseModel]) -> str:
    """Serialize report rows as CSV with a header taken from the row model."""
    columns = list(row_model.model_fields)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(getattr(row, column)) for column in columns])
    return buf.getvalue()


def timeliness_rows_with_total(report: TimelinessReport) -> list[TimelinessRow]:
    """The bucket rows followed by a TOTAL row over every counted pair."""
    total = TimelinessRow(
        category=TOTAL_CATEGORY,
        count=report.total,
        percent=100.0 if report.total else 0.0,
    )
    return [*report.rows, total]


def export_quiz_performance_csv(db: Session, owner_id: Optional[int] = None) -> str:
    rows = analytics_service.quiz_performance_by_topic(db, owner_id=owner_id)
    return rows_to_csv(rows, QuizTopicPerformanceRow)


def export_timeliness_csv(db: Session, now: datetime, owner_id: Optional[int] = None) -> str:
    report = analytics_service.submission_timeliness(db, now, owner_id=owner_id)
    return rows_to_csv(timeliness_rows_with_total(report), TimelinessRow)


def export_weekly_activity_csv(
    db: Session,
    now: datetime,
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    owner_id: Optional[int] = None,
) -> str:
    rows = analytics_service.weekly_content_activity(db, now, weeks=weeks, owner_id=owner_id)
    return rows_to_csv(rows, WeeklyActivityRow)


def export_all_analytics_csv(
    db: Session,
    now: datetime,
    owner_id: Optional[int] = None,
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
) -> AnalyticsCsvBundle:
    """All three reports as CSV documents in one payload."""
    return AnalyticsCsvBundle(
        quiz_performance=export_quiz_performance_csv(db, owner_id=owner_id),
        submission_timeliness=export_timeliness_csv(db, now, owner_id=owner_id),
        weekly_activity=export_weekly_activity_csv(db, now, weeks=weeks, owner_id=owner_id),
    )

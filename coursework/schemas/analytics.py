from datetime import date

from pydantic import BaseModel


class QuizTopicPerformanceRow(BaseModel):
    topic: str
    submission_count: int
    average_percent: float
    total_points: float  # largest total among the topic's quizzes
    teachers: list[str]


class TimelinessRow(BaseModel):
    category: str  # "ON_TIME" | "LATE" | "NOT_SUBMITTED"; exports end with "TOTAL"
    count: int
    percent: float


class TimelinessReport(BaseModel):
    on_time: int
    late: int
    not_submitted: int
    total: int
    rows: list[TimelinessRow]


class WeeklyActivityRow(BaseModel):
    week: str  # ISO week label, e.g. "2025-W02"
    week_start: date
    week_end: date
    assignments: int
    quizzes: int
    exams: int
    total: int


class TeacherAnalytics(BaseModel):
    quiz_performance: list[QuizTopicPerformanceRow]
    submission_timeliness: TimelinessReport
    weekly_activity: list[WeeklyActivityRow]


class AnalyticsCsvBundle(BaseModel):
    quiz_performance: str
    submission_timeliness: str
    weekly_activity: str

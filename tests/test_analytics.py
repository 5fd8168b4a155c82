from datetime import date, timedelta

import pytest

from coursework.core.errors import ValidationError
from coursework.schemas.analytics import QuizTopicPerformanceRow, TimelinessRow, WeeklyActivityRow
from coursework.services import analytics_service, export, submission_service, task_service
from coursework.services.upload_policy import UploadPayload
from tests.conftest import NOW, PDF, PNG


def image():
    return UploadPayload(data=PNG, media_type="image/png", filename="answers.png")


def document():
    return UploadPayload(data=PDF, media_type="application/pdf", filename="essay.pdf")


def make(db, blobs, owner, students, kind="quiz", title="Algebra Quiz", due_at=None, created=NOW):
    return task_service.create_task(
        db,
        blobs,
        owner_id=owner,
        kind=kind,
        title=title,
        due_at=due_at,
        total_points=100,
        student_ids=students,
        now=created,
    )


def submit_and_grade(db, blobs, task, student, grade, when=NOW):
    upload = image() if task.kind != "assignment" else document()
    sub = submission_service.submit(db, blobs, task_id=task.id, student_id=student, upload=upload, now=when)
    if grade is not None:
        submission_service.grade(db, submission_id=sub.id, grade=grade, now=when)
    return sub


@pytest.fixture()
def algebra(db, blobs, users):
    mine = make(db, blobs, users["teacher"], [users["alice"]])
    theirs = make(db, blobs, users["other_teacher"], [users["carol"]])
    submit_and_grade(db, blobs, mine, users["alice"], 70)
    submit_and_grade(db, blobs, theirs, users["carol"], 90)
    return mine, theirs


def test_same_title_quizzes_merge_into_one_topic(db, algebra):
    rows = analytics_service.quiz_performance_by_topic(db)

    assert len(rows) == 1
    row = rows[0]
    assert row.topic == "Algebra Quiz"
    assert row.submission_count == 2
    assert row.average_percent == 80.0
    assert row.teachers == ["teacher1@example.com", "teacher2@example.com"]


def test_topic_mean_is_blended_over_submissions(db, blobs, users, algebra):
    mine, _ = algebra
    # another graded quiz under the same title
    extra = make(db, blobs, users["teacher"], [users["bob"]])
    submit_and_grade(db, blobs, extra, users["bob"], 60)

    row = analytics_service.quiz_performance_by_topic(db)[0]
    assert row.submission_count == 3
    assert row.average_percent == round((70 + 90 + 60) / 3, 1)


def test_quiz_performance_scoped_to_owner(db, users, algebra):
    rows = analytics_service.quiz_performance_by_topic(db, owner_id=users["other_teacher"])
    assert [(r.topic, r.submission_count, r.average_percent) for r in rows] == [("Algebra Quiz", 1, 90.0)]


def test_ungraded_and_non_quiz_work_is_ignored(db, blobs, users):
    quiz = make(db, blobs, users["teacher"], [users["alice"], users["bob"]], title="Geometry")
    submit_and_grade(db, blobs, quiz, users["alice"], None)
    essay = make(db, blobs, users["teacher"], [users["alice"]], kind="assignment", title="Essay")
    submit_and_grade(db, blobs, essay, users["alice"], 100)

    assert analytics_service.quiz_performance_by_topic(db) == []


def test_topics_sorted_by_average_then_title(db, blobs, users):
    for title, grade in [("Sets", 50), ("Logic", 95), ("Proofs", 95)]:
        quiz = make(db, blobs, users["teacher"], [users["alice"]], title=title)
        submit_and_grade(db, blobs, quiz, users["alice"], grade)

    topics = [r.topic for r in analytics_service.quiz_performance_by_topic(db)]
    assert topics == ["Logic", "Proofs", "Sets"]


def test_timeliness_buckets_and_percentages(db, blobs, users):
    students = [users["alice"], users["bob"]]
    past_due = NOW - timedelta(days=1)

    first = make(db, blobs, users["teacher"], students, kind="assignment", title="A1", due_at=past_due)
    submit_and_grade(db, blobs, first, users["alice"], None, when=past_due - timedelta(days=1))

    second = make(db, blobs, users["teacher"], students, kind="assignment", title="A2", due_at=past_due)
    submit_and_grade(db, blobs, second, users["alice"], None, when=NOW)

    # not due yet and not submitted: does not count
    make(db, blobs, users["teacher"], students, kind="assignment", title="A3", due_at=NOW + timedelta(days=2))
    # no due date: never counts
    make(db, blobs, users["teacher"], students, kind="assignment", title="A4", due_at=None)

    report = analytics_service.submission_timeliness(db, NOW)

    assert (report.on_time, report.late, report.not_submitted, report.total) == (1, 1, 2, 4)
    assert {r.category: r.percent for r in report.rows} == {
        "ON_TIME": 25.0,
        "LATE": 25.0,
        "NOT_SUBMITTED": 50.0,
    }


def test_timeliness_with_nothing_due_is_all_zero(db):
    report = analytics_service.submission_timeliness(db, NOW)
    assert report.total == 0
    assert all(r.percent == 0.0 for r in report.rows)


def test_weekly_activity_returns_exactly_n_rows(db, blobs, users):
    make(db, blobs, users["teacher"], [users["alice"]], title="This week", created=NOW)
    make(
        db,
        blobs,
        users["teacher"],
        [users["alice"]],
        kind="assignment",
        title="Two weeks ago",
        created=NOW - timedelta(days=14),
    )
    # outside the window
    make(db, blobs, users["teacher"], [users["alice"]], title="Old", created=NOW - timedelta(weeks=10))

    rows = analytics_service.weekly_content_activity(db, NOW, weeks=4)

    assert len(rows) == 4
    assert [r.week for r in rows] == ["2025-W08", "2025-W09", "2025-W10", "2025-W11"]
    assert rows[-1].week_start == date(2025, 3, 10)
    assert rows[-1].week_end == date(2025, 3, 16)
    assert [r.quizzes for r in rows] == [0, 0, 0, 1]
    assert [r.assignments for r in rows] == [0, 1, 0, 0]
    assert [r.total for r in rows] == [0, 1, 0, 1]


def test_weekly_activity_with_no_tasks_is_all_zero_rows(db):
    rows = analytics_service.weekly_content_activity(db, NOW, weeks=12)
    assert len(rows) == 12
    assert all(r.total == 0 for r in rows)


@pytest.mark.parametrize("weeks", [0, 105])
def test_weekly_activity_rejects_bad_window(db, weeks):
    with pytest.raises(ValidationError):
        analytics_service.weekly_content_activity(db, NOW, weeks=weeks)


def test_exports_serialize_the_computed_rows(db, blobs, users, algebra):
    make(
        db,
        blobs,
        users["teacher"],
        [users["alice"]],
        kind="assignment",
        title="Due",
        due_at=NOW - timedelta(days=1),
    )

    assert export.export_quiz_performance_csv(db) == export.rows_to_csv(
        analytics_service.quiz_performance_by_topic(db), QuizTopicPerformanceRow
    )
    assert export.export_timeliness_csv(db, NOW) == export.rows_to_csv(
        export.timeliness_rows_with_total(analytics_service.submission_timeliness(db, NOW)), TimelinessRow
    )
    assert export.export_weekly_activity_csv(db, NOW, weeks=6) == export.rows_to_csv(
        analytics_service.weekly_content_activity(db, NOW, weeks=6), WeeklyActivityRow
    )


def test_quiz_export_layout(db, algebra):
    lines = export.export_quiz_performance_csv(db).splitlines()
    assert lines[0] == "topic,submission_count,average_percent,total_points,teachers"
    assert lines[1] == "Algebra Quiz,2,80.0,100.0,teacher1@example.com; teacher2@example.com"


def test_empty_export_still_has_a_header(db):
    assert export.export_quiz_performance_csv(db) == "topic,submission_count,average_percent,total_points,teachers\n"


def test_combined_report(db, algebra):
    report = analytics_service.teacher_analytics(db, NOW, weeks=3)
    assert len(report.quiz_performance) == 1
    assert len(report.weekly_activity) == 3
    assert report.submission_timeliness.total == 0


def test_timeliness_export_ends_with_total_row(db, blobs, users):
    students = [users["alice"], users["bob"]]
    past_due = NOW - timedelta(days=1)
    first = make(db, blobs, users["teacher"], students, kind="assignment", title="A1", due_at=past_due)
    submit_and_grade(db, blobs, first, users["alice"], None, when=past_due - timedelta(hours=1))
    second = make(db, blobs, users["teacher"], students, kind="assignment", title="A2", due_at=past_due)
    submit_and_grade(db, blobs, second, users["alice"], None, when=NOW)

    lines = export.export_timeliness_csv(db, NOW).splitlines()

    assert lines == [
        "category,count,percent",
        "ON_TIME,1,25.0",
        "LATE,1,25.0",
        "NOT_SUBMITTED,2,50.0",
        "TOTAL,4,100.0",
    ]


def test_empty_timeliness_export_totals_zero(db):
    assert export.export_timeliness_csv(db, NOW).splitlines()[-1] == "TOTAL,0,0.0"


def test_topic_total_points_is_the_largest_quiz_total(db, blobs, users, algebra):
    short = task_service.create_task(
        db,
        blobs,
        owner_id=users["teacher"],
        kind="quiz",
        title="Algebra Quiz",
        total_points=40,
        student_ids=[users["bob"]],
        now=NOW,
    )
    submit_and_grade(db, blobs, short, users["bob"], 20)

    row = analytics_service.quiz_performance_by_topic(db)[0]
    assert row.total_points == 100.0
    assert row.submission_count == 3
    assert row.average_percent == round((70 + 90 + 50) / 3, 1)


def test_export_all_bundles_the_three_reports(db, users, algebra):
    bundle = export.export_all_analytics_csv(db, NOW, owner_id=users["teacher"], weeks=4)

    assert bundle.quiz_performance == export.export_quiz_performance_csv(db, owner_id=users["teacher"])
    assert bundle.submission_timeliness == export.export_timeliness_csv(db, NOW, owner_id=users["teacher"])
    assert bundle.weekly_activity == export.export_weekly_activity_csv(db, NOW, weeks=4, owner_id=users["teacher"])
    assert len(bundle.weekly_activity.splitlines()) == 5


def test_export_all_rejects_bad_window(db):
    with pytest.raises(ValidationError):
        export.export_all_analytics_csv(db, NOW, weeks=0)

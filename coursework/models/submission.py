from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from coursework.db.base_class import Base


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    is_submitted = Column(Boolean, nullable=False, default=False, index=True)

    # submitted document (content store id), only set while submitted
    document_id = Column(String(32), nullable=True)
    document_name = Column(String(255), nullable=True)
    document_type = Column(String(100), nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)

    # Grading fields (nullable until graded)
    grade = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # bumped on every UPDATE; a stale writer matches zero rows and fails
    version_id = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "student_id", name="uq_submission_task_student"),
        CheckConstraint(
            "(grade IS NULL AND graded_at IS NULL) OR (grade IS NOT NULL AND graded_at IS NOT NULL)",
            name="ck_submission_grade_graded_at",
        ),
    )

    __mapper_args__ = {"version_id_col": version_id}

    task = relationship("Task", back_populates="submissions")
    student = relationship("User", back_populates="submissions")

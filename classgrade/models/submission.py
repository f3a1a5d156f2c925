"""提交（作答尝试）模型定义。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from classgrade.db import Base
from classgrade.models.enums import SubmissionStatus


class Submission(Base):
    """作业提交模型 - 每次上传都是一条新的 attempt。

    同一 (assignment_id, student_id) 下 attempt_number 从 1 递增，
    由唯一约束保证并发下不会出现重复序号。
    """

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint(
            "assignment_id",
            "student_id",
            "attempt_number",
            name="uq_submissions_attempt",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 关联
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # 对象存储中的路径: {assignment_id}/{student_id}/{timestamp}.{ext}
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.GRADING, nullable=False
    )

    # AI 评分
    ai_score: Mapped[Optional[float]] = mapped_column(Float)
    ai_feedback: Mapped[Optional[str]] = mapped_column(Text)
    # {accuracy, methodology, completeness}
    ai_breakdown: Mapped[Optional[dict]] = mapped_column(JSON)

    # 教师复核，优先于 AI 评分展示
    teacher_score: Mapped[Optional[float]] = mapped_column(Float)
    teacher_feedback: Mapped[Optional[str]] = mapped_column(Text)

    # 时间戳
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # 关系
    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User", foreign_keys=[student_id])

    @property
    def effective_score(self) -> Optional[float]:
        """展示分数：教师分数存在时优先。"""
        if self.teacher_score is not None:
            return self.teacher_score
        return self.ai_score

    def __repr__(self) -> str:
        return (
            f"<Submission(id={self.id}, assignment_id={self.assignment_id}, "
            f"attempt={self.attempt_number}, status={self.status.value})>"
        )

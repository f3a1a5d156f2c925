"""提交生命周期：创建 attempt、调用评分流水线、记录 AI 与教师评分。

状态规则：每次调用评分流水线都以 ``graded`` 或 ``grading_failed`` 结束。
流水线返回结果（包括兜底结果）记为 ``graded``；流水线抛出异常记为
``grading_failed``。提交记录在评分开始前已落库。
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from classgrade.db import commit_or_raise
from classgrade.errors import (
    AlreadyExistsError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceFailure,
    ValidationFailure,
)
from classgrade.models import Assignment, ClassMember, Classroom, Submission, SubmissionStatus, User, UserRole
from classgrade.schemas.grading import GradingConfig, GradingResult
from classgrade.services.grading import GradingPipeline
from classgrade.utils.dates import utcnow

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


def _with_context(query):
    return query.options(
        joinedload(Submission.student),
        joinedload(Submission.assignment).joinedload(Assignment.classroom),
    )


class SubmissionService:
    """封装提交的创建、评分回写与查询。"""

    def next_attempt_number(self, db: Session, assignment_id: int, student_id: int) -> int:
        current = (
            db.query(func.max(Submission.attempt_number))
            .filter(
                Submission.assignment_id == assignment_id,
                Submission.student_id == student_id,
            )
            .scalar()
        )
        return (current or 0) + 1

    def ensure_can_submit(self, db: Session, assignment_id: int, student_id: int) -> Assignment:
        assignment = (
            db.query(Assignment)
            .options(joinedload(Assignment.classroom))
            .filter(Assignment.id == assignment_id)
            .first()
        )
        if assignment is None:
            raise NotFoundError("作业不存在")
        enrolled = (
            db.query(ClassMember.id)
            .filter(ClassMember.class_id == assignment.class_id, ClassMember.user_id == student_id)
            .first()
        )
        if enrolled is None:
            raise PermissionDeniedError("未加入该作业所在班级")
        return assignment

    def create_submission(
        self, db: Session, assignment_id: int, student_id: int, file_path: str
    ) -> Submission:
        """插入一条 ``grading`` 状态的新 attempt 并立即提交。

        并发提交算出相同序号时由唯一约束拒绝，报告为 ``AlreadyExistsError``。
        """

        if not file_path:
            raise ValidationFailure("缺少提交文件")
        self.ensure_can_submit(db, assignment_id, student_id)

        submission = Submission(
            assignment_id=assignment_id,
            student_id=student_id,
            file_path=file_path,
            attempt_number=self.next_attempt_number(db, assignment_id, student_id),
            status=SubmissionStatus.GRADING,
            ai_score=None,
            ai_feedback=None,
            teacher_score=None,
            teacher_feedback=None,
            graded_at=None,
        )
        db.add(submission)
        try:
            commit_or_raise(db)
        except IntegrityError as exc:
            raise AlreadyExistsError("该作业存在并发提交，请刷新后重试") from exc
        db.refresh(submission)
        logger.info(
            "Created submission %s (attempt %d) for assignment %s by student %s",
            submission.id,
            submission.attempt_number,
            assignment_id,
            student_id,
        )
        return submission

    def record_grading(self, db: Session, submission: Submission, result: GradingResult) -> Submission:
        submission.status = SubmissionStatus.GRADED
        submission.ai_score = result.score
        submission.ai_feedback = result.feedback
        submission.ai_breakdown = result.breakdown.model_dump() if result.breakdown else None
        submission.graded_at = utcnow()
        commit_or_raise(db)
        db.refresh(submission)
        return submission

    def mark_grading_failed(self, db: Session, submission: Submission) -> Submission:
        submission.status = SubmissionStatus.GRADING_FAILED
        commit_or_raise(db)
        db.refresh(submission)
        return submission

    def submit_and_grade(
        self,
        db: Session,
        assignment_id: int,
        student_id: int,
        file_path: str,
        image_url: str,
        pipeline: GradingPipeline,
    ) -> Submission:
        submission = self.create_submission(db, assignment_id, student_id, file_path)
        return self.grade_submission(db, submission, image_url, pipeline)

    def grade_submission(
        self,
        db: Session,
        submission: Submission,
        image_url: str,
        pipeline: GradingPipeline,
    ) -> Submission:
        """对已落库的 attempt 运行评分流水线，并写入终态。"""

        assignment = submission.assignment
        config = GradingConfig(
            assignment_id=assignment.id,
            assignment_title=assignment.title,
            rubric=assignment.rubric,
            answer_key=assignment.answer_key,
        )

        try:
            result = pipeline.grade(image_url, config)
        except Exception:
            logger.exception("Grading pipeline raised for submission %s", submission.id)
            return self.mark_grading_failed(db, submission)

        try:
            return self.record_grading(db, submission, result)
        except PersistenceFailure:
            logger.exception("Could not store grading result for submission %s", submission.id)
            return self.mark_grading_failed(db, submission)

    def update_teacher_review(
        self,
        db: Session,
        submission_id: int,
        teacher_id: int,
        score: Optional[float],
        comment: Optional[str],
    ) -> Submission:
        """覆盖写入教师分数与评语，None 表示清空；不修改 status 与 ai_score。"""

        if score is not None and not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationFailure(f"score must be between {MIN_SCORE} and {MAX_SCORE}")

        submission = self.get_submission(db, submission_id)
        if submission.assignment.classroom.teacher_id != teacher_id:
            raise PermissionDeniedError("只能复核自己班级的提交")

        if comment is not None:
            comment = comment.strip() or None
        submission.teacher_score = score
        submission.teacher_feedback = comment
        commit_or_raise(db)
        db.refresh(submission)
        logger.info("Teacher %s reviewed submission %s", teacher_id, submission_id)
        return submission

    def get_submission(self, db: Session, submission_id: int) -> Submission:
        submission = _with_context(db.query(Submission)).filter(Submission.id == submission_id).first()
        if submission is None:
            raise NotFoundError("提交不存在")
        return submission

    def get_for_viewer(self, db: Session, submission_id: int, viewer: User) -> Submission:
        submission = self.get_submission(db, submission_id)
        if viewer.role == UserRole.STUDENT:
            if submission.student_id != viewer.id:
                raise PermissionDeniedError("只能查看自己的提交")
        elif submission.assignment.classroom.teacher_id != viewer.id:
            raise PermissionDeniedError("只能查看自己班级的提交")
        return submission

    def list_attempts(self, db: Session, assignment_id: int, student_id: int) -> list[Submission]:
        """按 attempt_number 倒序，第 0 个为最新一次。"""

        return (
            db.query(Submission)
            .filter(
                Submission.assignment_id == assignment_id,
                Submission.student_id == student_id,
            )
            .order_by(Submission.attempt_number.desc())
            .all()
        )

    def list_for_student(
        self, db: Session, student_id: int, assignment_id: Optional[int] = None
    ) -> list[Submission]:
        query = _with_context(db.query(Submission)).filter(Submission.student_id == student_id)
        if assignment_id is not None:
            query = query.filter(Submission.assignment_id == assignment_id)
        return query.order_by(Submission.created_at.desc(), Submission.id.desc()).all()

    def list_for_assignment(self, db: Session, assignment_id: int) -> list[Submission]:
        return (
            _with_context(db.query(Submission))
            .filter(Submission.assignment_id == assignment_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .all()
        )

    def list_for_teacher(self, db: Session, teacher_id: int) -> list[Submission]:
        return (
            _with_context(db.query(Submission))
            .join(Assignment, Assignment.id == Submission.assignment_id)
            .join(Classroom, Classroom.id == Assignment.class_id)
            .filter(Classroom.teacher_id == teacher_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .all()
        )

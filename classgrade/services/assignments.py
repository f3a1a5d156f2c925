"""作业相关的查询与创建逻辑。

学生视角按截止时间升序返回，并附带本人的全部 attempt（倒序）；
教师视角附带提交统计。
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from classgrade.db import commit_or_raise
from classgrade.errors import NotFoundError, PermissionDeniedError, ValidationFailure
from classgrade.models import Assignment, ClassMember, Classroom, Submission, SubmissionStatus
from classgrade.schemas.records import (
    StudentAssignmentResponse,
    TeacherAssignmentResponse,
    serialize_assignment,
    serialize_submission,
)
from classgrade.utils.dates import as_utc

logger = logging.getLogger(__name__)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AssignmentService:
    """封装与作业相关的查询与创建逻辑。"""

    def create_assignment(
        self,
        db: Session,
        class_id: int,
        teacher_id: int,
        title: str,
        due_date: datetime,
        description: Optional[str] = None,
    ) -> Assignment:
        title = (title or "").strip()
        if not title:
            raise ValidationFailure("作业标题不能为空")
        if due_date is None:
            raise ValidationFailure("截止时间不能为空")

        classroom = db.get(Classroom, class_id)
        if classroom is None:
            raise NotFoundError("班级不存在")
        if classroom.teacher_id != teacher_id:
            raise PermissionDeniedError("只能在自己的班级下布置作业")

        assignment = Assignment(
            class_id=class_id,
            teacher_id=teacher_id,
            title=title,
            description=_clean_text(description),
            # SQLite 不保存时区偏移，入库前统一换算为 UTC
            due_date=as_utc(due_date),
            rubric=None,
            answer_key=None,
        )
        db.add(assignment)
        commit_or_raise(db)
        db.refresh(assignment)
        logger.info("Teacher %s created assignment %s in class %s", teacher_id, assignment.id, class_id)
        return assignment

    def update_grading_material(
        self,
        db: Session,
        assignment_id: int,
        teacher_id: int,
        rubric: Optional[str],
        answer_key: Optional[str],
    ) -> Assignment:
        """覆盖写入评分标准与参考答案，传 None 表示清空。"""

        assignment = self.get_assignment(db, assignment_id)
        self.ensure_owner(assignment, teacher_id)
        assignment.rubric = _clean_text(rubric)
        assignment.answer_key = _clean_text(answer_key)
        commit_or_raise(db)
        db.refresh(assignment)
        return assignment

    def get_assignment(self, db: Session, assignment_id: int) -> Assignment:
        assignment = (
            db.query(Assignment)
            .options(joinedload(Assignment.classroom))
            .filter(Assignment.id == assignment_id)
            .first()
        )
        if assignment is None:
            raise NotFoundError("作业不存在")
        return assignment

    def ensure_owner(self, assignment: Assignment, teacher_id: int) -> None:
        if assignment.classroom.teacher_id != teacher_id:
            raise PermissionDeniedError("只能操作自己班级的作业")

    def list_for_class(self, db: Session, class_id: int) -> list[Assignment]:
        return (
            db.query(Assignment)
            .options(joinedload(Assignment.classroom))
            .filter(Assignment.class_id == class_id)
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .all()
        )

    def list_for_student(self, db: Session, student_id: int) -> list[StudentAssignmentResponse]:
        class_ids = [
            row[0]
            for row in db.query(ClassMember.class_id).filter(ClassMember.user_id == student_id).all()
        ]
        if not class_ids:
            return []

        assignments = (
            db.query(Assignment)
            .options(joinedload(Assignment.classroom))
            .filter(Assignment.class_id.in_(class_ids))
            .order_by(Assignment.due_date.asc(), Assignment.id.asc())
            .all()
        )
        if not assignments:
            return []

        # 一次查询取回全部 attempt，再按作业分组
        attempts = (
            db.query(Submission)
            .filter(
                Submission.assignment_id.in_([a.id for a in assignments]),
                Submission.student_id == student_id,
            )
            .order_by(Submission.attempt_number.desc())
            .all()
        )
        by_assignment: dict[int, list[Submission]] = defaultdict(list)
        for attempt in attempts:
            by_assignment[attempt.assignment_id].append(attempt)

        result: list[StudentAssignmentResponse] = []
        for assignment in assignments:
            history = [serialize_submission(s) for s in by_assignment.get(assignment.id, [])]
            item = StudentAssignmentResponse(
                **serialize_assignment(assignment).model_dump(),
                attempts=history,
                latest_attempt=history[0] if history else None,
            )
            result.append(item)
        return result

    def list_for_teacher(self, db: Session, teacher_id: int) -> list[TeacherAssignmentResponse]:
        assignments = (
            db.query(Assignment)
            .join(Classroom, Classroom.id == Assignment.class_id)
            .options(joinedload(Assignment.classroom))
            .filter(Classroom.teacher_id == teacher_id)
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .all()
        )
        if not assignments:
            return []

        stats = {
            row.assignment_id: row
            for row in db.query(
                Submission.assignment_id,
                func.count(Submission.id).label("submission_count"),
                func.count(func.distinct(Submission.student_id)).label("student_count"),
            )
            .filter(Submission.assignment_id.in_([a.id for a in assignments]))
            .group_by(Submission.assignment_id)
            .all()
        }
        graded = dict(
            db.query(Submission.assignment_id, func.count(Submission.id))
            .filter(
                Submission.assignment_id.in_([a.id for a in assignments]),
                Submission.status == SubmissionStatus.GRADED,
            )
            .group_by(Submission.assignment_id)
            .all()
        )

        result: list[TeacherAssignmentResponse] = []
        for assignment in assignments:
            row = stats.get(assignment.id)
            result.append(
                TeacherAssignmentResponse(
                    **serialize_assignment(assignment).model_dump(),
                    submission_count=row.submission_count if row else 0,
                    student_count=row.student_count if row else 0,
                    graded_count=graded.get(assignment.id, 0),
                )
            )
        return result

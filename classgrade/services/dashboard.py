"""仪表盘统计：平均分、连续提交天数、完成数、迟交数。

统计函数只依赖对象上的 status / ai_score / teacher_score / created_at
属性，ORM 对象与响应模型都可以直接传入。
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from classgrade.models import COMPLETED_STATUSES, SubmissionStatus, User
from classgrade.schemas.dashboard import StudentDashboard, StudentStats, TeacherDashboard, TeacherStats
from classgrade.schemas.records import UserResponse, serialize_class, serialize_submission
from classgrade.services.assignments import AssignmentService
from classgrade.services.classes import ClassroomService
from classgrade.services.submissions import SubmissionService
from classgrade.utils.dates import as_utc, utcnow

RECENT_SUBMISSION_LIMIT = 10


def _status(value) -> SubmissionStatus:
    return value if isinstance(value, SubmissionStatus) else SubmissionStatus(value)


def effective_score(submission) -> Optional[float]:
    if submission.teacher_score is not None:
        return submission.teacher_score
    return submission.ai_score


def average_score(submissions: Iterable) -> int:
    """已评分提交的展示分数均值，四舍五入取整；没有时为 0。"""

    scores = [
        effective_score(s)
        for s in submissions
        if _status(s.status) == SubmissionStatus.GRADED
        and (s.teacher_score is not None or s.ai_score is not None)
    ]
    if not scores:
        return 0
    return int(sum(scores) / len(scores) + 0.5)


def day_streak(submissions: Iterable, today: Optional[date] = None) -> int:
    """从今天往前数，每天至少一次 graded/grading 提交的连续天数。"""

    if today is None:
        today = utcnow().date()
    days = {
        as_utc(s.created_at).date()
        for s in submissions
        if _status(s.status) in COMPLETED_STATUSES
    }
    streak = 0
    cursor = today
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def is_completed(attempts: Sequence) -> bool:
    """最新一次 attempt（第 0 个）为 graded 或 grading 视为完成。"""

    return bool(attempts) and _status(attempts[0].status) in COMPLETED_STATUSES


def completion_count(attempt_histories: Iterable[Sequence]) -> int:
    return sum(1 for attempts in attempt_histories if is_completed(attempts))


def late_count(submissions: Iterable, due_dates: Mapping[int, datetime]) -> int:
    """创建时间晚于所属作业截止时间的提交数。"""

    count = 0
    for s in submissions:
        due = due_dates.get(s.assignment_id)
        if due is not None and as_utc(s.created_at) > as_utc(due):
            count += 1
    return count


class DashboardService:
    """聚合班级、作业与提交数据生成仪表盘。"""

    def __init__(
        self,
        classes: Optional[ClassroomService] = None,
        assignments: Optional[AssignmentService] = None,
        submissions: Optional[SubmissionService] = None,
    ) -> None:
        self.classes = classes or ClassroomService()
        self.assignments = assignments or AssignmentService()
        self.submissions = submissions or SubmissionService()

    def student_dashboard(
        self, db: Session, student: User, today: Optional[date] = None
    ) -> StudentDashboard:
        classes = self.classes.list_student_classes(db, student.id)
        assignments = self.assignments.list_for_student(db, student.id)
        history = self.submissions.list_for_student(db, student.id)

        completed = completion_count(a.attempts for a in assignments)
        stats = StudentStats(
            active_classes=len(classes),
            pending_assignments=len(assignments) - completed,
            completed_assignments=completed,
            average_score=average_score(history),
            day_streak=day_streak(history, today),
        )
        return StudentDashboard(
            user=UserResponse.model_validate(student),
            stats=stats,
            classes=[serialize_class(c) for c in classes],
            assignments=assignments,
            recent_submissions=[
                serialize_submission(s, with_context=True)
                for s in history[:RECENT_SUBMISSION_LIMIT]
            ],
        )

    def teacher_dashboard(self, db: Session, teacher: User) -> TeacherDashboard:
        classes = self.classes.list_teacher_classes(db, teacher.id)
        assignments = self.assignments.list_for_teacher(db, teacher.id)
        submissions = self.submissions.list_for_teacher(db, teacher.id)

        due_dates = {a.id: a.due_date for a in assignments}
        stats = TeacherStats(
            total_classes=len(classes),
            total_students=sum(len(c.members) for c in classes),
            total_assignments=len(assignments),
            total_submissions=len(submissions),
            average_score=average_score(submissions),
            late_submissions=late_count(submissions, due_dates),
        )
        return TeacherDashboard(
            user=UserResponse.model_validate(teacher),
            stats=stats,
            classes=[serialize_class(c) for c in classes],
            assignments=assignments,
            submissions=[serialize_submission(s, with_context=True) for s in submissions],
        )

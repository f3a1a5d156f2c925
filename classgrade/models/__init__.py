"""SQLAlchemy 模型汇总导出。"""

from classgrade.models.assignment import Assignment
from classgrade.models.classroom import ClassMember, Classroom
from classgrade.models.enums import COMPLETED_STATUSES, SubmissionStatus, UserRole
from classgrade.models.submission import Submission
from classgrade.models.user import User

__all__ = [
    "Assignment",
    "ClassMember",
    "Classroom",
    "COMPLETED_STATUSES",
    "Submission",
    "SubmissionStatus",
    "User",
    "UserRole",
]

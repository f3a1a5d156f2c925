"""角色与提交状态枚举。"""

import enum


class UserRole(str, enum.Enum):
    """用户角色枚举，注册后不可修改。"""
    TEACHER = "teacher"
    STUDENT = "student"


class SubmissionStatus(str, enum.Enum):
    """提交状态。

    grading -> graded 或 grading -> grading_failed，终态不再迁移；
    教师复核只写 teacher_score / teacher_feedback，不改状态。
    """
    GRADING = "grading"                  # 已上传，AI 评分进行中
    GRADED = "graded"                    # AI 评分完成
    GRADING_FAILED = "grading_failed"    # 评分流水线异常


# 仪表盘中视为“已完成”的状态
COMPLETED_STATUSES = frozenset({SubmissionStatus.GRADED, SubmissionStatus.GRADING})

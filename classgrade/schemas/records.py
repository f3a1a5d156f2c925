"""班级、作业、提交的响应模型，供 service 与路由共享。"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from classgrade.models import Assignment, ClassMember, Classroom, Submission
from classgrade.models.enums import SubmissionStatus, UserRole


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: UserRole
    email_confirmed_at: Optional[datetime] = None
    created_at: datetime


class ClassResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    class_code: str
    teacher_id: int
    created_at: datetime
    member_count: int = 0


class MemberResponse(BaseModel):
    id: int
    class_id: int
    user_id: int
    name: str
    email: str
    created_at: datetime


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    class_id: int
    teacher_id: int
    title: str
    description: Optional[str]
    due_date: datetime
    rubric: Optional[str]
    answer_key: Optional[str]
    created_at: datetime
    class_name: Optional[str] = None


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    student_id: int
    file_path: str
    attempt_number: int
    status: SubmissionStatus
    ai_score: Optional[float]
    ai_feedback: Optional[str]
    ai_breakdown: Optional[dict] = None
    teacher_score: Optional[float]
    teacher_feedback: Optional[str]
    effective_score: Optional[float]
    created_at: datetime
    graded_at: Optional[datetime]
    # 嵌套的上下文信息
    student_name: Optional[str] = None
    assignment_title: Optional[str] = None
    class_name: Optional[str] = None


class StudentAssignmentResponse(AssignmentResponse):
    """学生视角：附带本人全部 attempt，按 attempt_number 倒序，第 0 个为最新。"""

    attempts: List[SubmissionResponse] = Field(default_factory=list)
    latest_attempt: Optional[SubmissionResponse] = None


class TeacherAssignmentResponse(AssignmentResponse):
    """教师视角：附带提交统计。"""

    submission_count: int = 0
    student_count: int = 0
    graded_count: int = 0


def serialize_class(classroom: Classroom) -> ClassResponse:
    response = ClassResponse.model_validate(classroom)
    response.member_count = len(classroom.members)
    return response


def serialize_member(member: ClassMember) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        class_id=member.class_id,
        user_id=member.user_id,
        name=member.user.name,
        email=member.user.email,
        created_at=member.created_at,
    )


def serialize_assignment(assignment: Assignment) -> AssignmentResponse:
    response = AssignmentResponse.model_validate(assignment)
    if assignment.classroom is not None:
        response.class_name = assignment.classroom.name
    return response


def serialize_submission(submission: Submission, with_context: bool = False) -> SubmissionResponse:
    response = SubmissionResponse.model_validate(submission)
    if with_context:
        if submission.student is not None:
            response.student_name = submission.student.name
        assignment = submission.assignment
        if assignment is not None:
            response.assignment_title = assignment.title
            if assignment.classroom is not None:
                response.class_name = assignment.classroom.name
    return response

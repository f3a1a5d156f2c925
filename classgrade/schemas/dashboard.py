"""学生/教师仪表盘的汇总结构。"""

from typing import List

from pydantic import BaseModel, Field

from classgrade.schemas.records import (
    ClassResponse,
    StudentAssignmentResponse,
    SubmissionResponse,
    TeacherAssignmentResponse,
    UserResponse,
)


class StudentStats(BaseModel):
    active_classes: int = 0
    pending_assignments: int = 0
    completed_assignments: int = 0
    average_score: int = 0
    day_streak: int = 0


class TeacherStats(BaseModel):
    total_classes: int = 0
    total_students: int = 0
    total_assignments: int = 0
    total_submissions: int = 0
    average_score: int = 0
    late_submissions: int = 0


class StudentDashboard(BaseModel):
    user: UserResponse
    stats: StudentStats
    classes: List[ClassResponse] = Field(default_factory=list)
    assignments: List[StudentAssignmentResponse] = Field(default_factory=list)
    recent_submissions: List[SubmissionResponse] = Field(default_factory=list)


class TeacherDashboard(BaseModel):
    user: UserResponse
    stats: TeacherStats
    classes: List[ClassResponse] = Field(default_factory=list)
    assignments: List[TeacherAssignmentResponse] = Field(default_factory=list)
    submissions: List[SubmissionResponse] = Field(default_factory=list)

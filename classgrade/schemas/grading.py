"""评分流水线的输入/输出契约。"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


def clamp_score(value: float) -> float:
    """把分数限制在 0-100。"""

    return max(0.0, min(100.0, float(value)))


class GradingConfig(BaseModel):
    """评分时附带的作业上下文。"""

    assignment_id: int
    assignment_title: str = ""
    rubric: Optional[str] = None
    answer_key: Optional[str] = None


class ScoreBreakdown(BaseModel):
    accuracy: Optional[float] = None
    methodology: Optional[float] = None
    completeness: Optional[float] = None

    @field_validator("accuracy", "methodology", "completeness", mode="before")
    @classmethod
    def _clamp(cls, value):
        if value is None:
            return None
        return clamp_score(value)


class GradingResult(BaseModel):
    """评分结果，score 始终落在 0-100。"""

    score: float = Field(ge=0, le=100)
    feedback: str
    breakdown: Optional[ScoreBreakdown] = None
    is_fallback: bool = False

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        return clamp_score(value)

"""FastAPI 依赖注入工具。

存储与评分流水线通过依赖提供，测试中可用 ``dependency_overrides`` 替换。
"""

from functools import lru_cache

from classgrade.config import get_settings
from classgrade.db import get_db
from classgrade.services.grading import GradingPipeline
from classgrade.utils.storage import SubmissionStorage

__all__ = ["get_db", "get_storage", "get_grading_pipeline"]


@lru_cache(maxsize=1)
def get_storage() -> SubmissionStorage:
    """提交图片的对象存储。"""

    return SubmissionStorage.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_grading_pipeline() -> GradingPipeline:
    """识别 + 打分两阶段评分流水线。"""

    return GradingPipeline.from_settings(get_settings())

"""领域异常定义。

Service 层抛出以下异常，路由层统一转换为 ``HTTPException``。
"""


class NotFoundError(LookupError):
    """目标记录不存在（例如班级码无匹配）。"""


class AlreadyExistsError(ValueError):
    """违反唯一性约束（重复加入班级、并发产生的重复提交序号）。"""


class ValidationFailure(ValueError):
    """必填字段缺失或取值越界。"""


class PermissionDeniedError(PermissionError):
    """当前用户无权操作该资源。"""


class UpstreamFailure(RuntimeError):
    """OCR / LLM 服务调用失败，评分流水线内部会转为兜底结果。"""


class PersistenceFailure(RuntimeError):
    """数据库写入被拒绝。"""

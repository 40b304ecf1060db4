"""工作流异常体系

所有策略校验失败与存储查找失败都从 WorkflowError 派生，
异常实例携带结构化上下文，消息面向调用方 agent（英文）。
"""


class WorkflowError(Exception):
    """工作流基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方修正输入后是否可重试
        """
        super().__init__(message)
        self.recoverable = recoverable


class ConfigurationError(WorkflowError):
    """环境配置非法（如 PROJECT_MAPPINGS 不是合法 JSON）"""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class InvalidEffort(WorkflowError):
    """effort 不在固定序数集合内"""

    def __init__(self, effort: object, valid: tuple[int, ...], context: str = "") -> None:
        valid_label = ", ".join(str(v) for v in valid)
        prefix = f"{context} effort" if context else "Task effort"
        super().__init__(f"{prefix} must be one of {valid_label}, got {effort}")
        self.effort = effort
        self.valid = valid


class MissingUncertainties(WorkflowError):
    """effort > 3 的任务创建时未声明任何不确定性"""

    def __init__(self, title: str, effort: int) -> None:
        super().__init__(
            f'Task "{title}" has effort {effort} (>3) but no uncertainties. '
            "Add at least one uncertainty before decomposition."
        )
        self.title = title
        self.effort = effort


class UnresolvedUncertainties(WorkflowError):
    """block 模式下拆解前仍存在未解决的不确定性"""

    def __init__(self, task_key: str, count: int) -> None:
        super().__init__(
            f"Task {task_key} has {count} unresolved uncertainties. "
            "Resolve them before decomposing using update_task with resolve operation."
        )
        self.task_key = task_key
        self.count = count


class UnknownProject(WorkflowError):
    """请求的项目 key 未配置"""

    def __init__(self, requested: str, available: list[str]) -> None:
        available_label = ", ".join(available) if available else "none configured"
        super().__init__(
            f'Project "{requested}" is not configured. Available projects: {available_label}'
        )
        self.requested = requested
        self.available = available


class TaskNotFound(WorkflowError):
    """外部存储中找不到任务"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class UncertaintyNotFound(WorkflowError):
    """resolve 操作按精确标题找不到不确定性"""

    def __init__(self, task_id: str, title: str) -> None:
        super().__init__(f'Uncertainty "{title}" not found in task {task_id}')
        self.task_id = task_id
        self.title = title


class DecompositionNotRequired(WorkflowError):
    """父任务 effort <= 3，无需拆解"""

    def __init__(self, task_id: str, effort: int) -> None:
        super().__init__(f"Task {task_id} (effort: {effort}) does not require decomposition")
        self.task_id = task_id
        self.effort = effort


class EmptyOperation(WorkflowError):
    """批量查询更新未给出任何 set/add/remove/resolve"""

    def __init__(self) -> None:
        super().__init__("operation must include at least one of set/add/remove/resolve")


class BatchTooLarge(WorkflowError):
    """批量创建超过上限"""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Batch size cannot exceed {limit} tasks, got {size}")
        self.size = size
        self.limit = limit


class BatchIndexOutOfRange(WorkflowError):
    """dependsOnBatchIndex 越界"""

    def __init__(self, position: int, index: int, size: int) -> None:
        super().__init__(
            f"Task {position}: dependsOnBatchIndex[{index}] out of range (batch size: {size})"
        )
        self.position = position
        self.index = index
        self.size = size


class SelfDependency(WorkflowError):
    """批内任务依赖自身"""

    def __init__(self, position: int) -> None:
        super().__init__(f"Task {position}: cannot depend on itself")
        self.position = position


class ForwardDependency(WorkflowError):
    """批内任务依赖更靠后的任务"""

    def __init__(self, position: int, index: int) -> None:
        super().__init__(
            f"Task {position}: dependsOnBatchIndex[{index}] references a later task. "
            "Dependencies must reference earlier tasks in the batch."
        )
        self.position = position
        self.index = index

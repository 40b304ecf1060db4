"""枚举定义

任务状态、复杂度偏向、经验分类、依赖类型与不确定性策略模式。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """任务状态 -- 与 tracker 工作流状态一一映射"""

    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    DONE = "done"
    # 终态（非完成），任务从不删除
    CANCELED = "canceled"


# ready 过滤默认使用的状态集合
READY_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.BACKLOG)


class ComplexityBias(StrEnum):
    """复杂度偏向"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LessonCategory(StrEnum):
    """经验分类"""

    PATTERN = "pattern"
    DECISION = "decision"
    GOTCHA = "gotcha"
    SOLUTION = "solution"
    PERFORMANCE = "performance"
    BALANCE = "balance"


class DependencyType(StrEnum):
    """任务依赖类型"""

    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"


class UncertaintyMode(StrEnum):
    """拆解前不确定性检查模式"""

    OFF = "off"
    WARN = "warn"
    BLOCK = "block"


class KnowledgeScope(StrEnum):
    """知识库写入范围"""

    PROJECT = "project"
    GLOBAL = "global"

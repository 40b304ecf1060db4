"""agent-task-manager Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    READY_STATUSES,
    ComplexityBias,
    DependencyType,
    KnowledgeScope,
    LessonCategory,
    TaskStatus,
    UncertaintyMode,
)
from .inputs import (
    BatchCreateTasksInput,
    BatchTaskInput,
    CreateTaskInput,
    DecomposeTaskInput,
    ExtractLessonInput,
    ListTasksInput,
    QueryTasksInput,
    ResolveUncertaintyInput,
    ResolveUncertaintyItem,
    SubtaskInput,
    TaskBulkOperation,
    TaskFilter,
    TaskUpdateAdd,
    TaskUpdateOperation,
    TaskUpdateRemove,
    TaskUpdateResolve,
    TaskUpdateSet,
    UncertaintyDraft,
    UpdateTaskInput,
)
from .patches import CorePatch, EffortPatch, NewTask
from .results import (
    BatchCreateResult,
    CreateTaskResult,
    DecomposeResult,
    KnowledgeSearchResult,
    QueryTasksResult,
    TaskDetails,
    TaskPage,
    UpdateTaskResult,
)
from .task import IssueMetadata, LessonLearned, Task, TaskDependency, Uncertainty

__all__ = [
    # 枚举
    "TaskStatus",
    "ComplexityBias",
    "LessonCategory",
    "DependencyType",
    "UncertaintyMode",
    "KnowledgeScope",
    "READY_STATUSES",
    # Task
    "Task",
    "Uncertainty",
    "LessonLearned",
    "TaskDependency",
    "IssueMetadata",
    # 输入
    "UncertaintyDraft",
    "CreateTaskInput",
    "BatchTaskInput",
    "BatchCreateTasksInput",
    "SubtaskInput",
    "DecomposeTaskInput",
    "TaskUpdateSet",
    "TaskUpdateAdd",
    "TaskUpdateRemove",
    "ResolveUncertaintyItem",
    "TaskUpdateResolve",
    "TaskUpdateOperation",
    "UpdateTaskInput",
    "TaskFilter",
    "ListTasksInput",
    "TaskBulkOperation",
    "QueryTasksInput",
    "ResolveUncertaintyInput",
    "ExtractLessonInput",
    # 写入意图
    "CorePatch",
    "EffortPatch",
    "NewTask",
    # 结果
    "TaskPage",
    "CreateTaskResult",
    "BatchCreateResult",
    "DecomposeResult",
    "UpdateTaskResult",
    "QueryTasksResult",
    "TaskDetails",
    "KnowledgeSearchResult",
]

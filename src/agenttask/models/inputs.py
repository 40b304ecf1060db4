"""调用方输入模型

这里只校验输入的形状（类型、必填、长度）。
effort 取值、批内依赖索引等策略校验由 domain 层完成，
以便抛出工作流异常而非 ValidationError。
"""

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .enums import ComplexityBias, KnowledgeScope, TaskStatus
from .task import LessonLearned, TaskDependency


def _coerce_uncertainty(value: object) -> object:
    """裸字符串视为只有标题的不确定性"""
    if isinstance(value, str):
        return {"title": value}
    return value


class UncertaintyDraft(BaseModel):
    """创建时的不确定性草稿（尚未解决）"""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str | None = None


UncertaintyInput = Annotated[UncertaintyDraft, BeforeValidator(_coerce_uncertainty)]


class CreateTaskInput(BaseModel):
    """create_task 输入"""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str | None = None
    goal: str | None = None
    effort: int = Field(description="effort 序数值: 1, 2, 3, 5, 8, 13, 21")
    effort_reason: str | None = None
    complexity_bias: ComplexityBias | None = None
    project: str | None = Field(default=None, description="项目 key（非外部 ID）")
    uncertainties: list[UncertaintyInput] = Field(default_factory=list)
    dependencies: list[TaskDependency] = Field(default_factory=list)
    assignee: str | None = None
    due_date: str | None = None
    labels: list[Annotated[str, Field(min_length=1)]] = Field(default_factory=list)


class BatchTaskInput(CreateTaskInput):
    """批量创建中的单个任务"""

    depends_on_batch_index: list[int] = Field(
        default_factory=list,
        description="本批次中被依赖任务的 0 起始位置",
    )


class BatchCreateTasksInput(BaseModel):
    """batch_create_tasks 输入"""

    model_config = ConfigDict(extra="forbid")

    tasks: list[BatchTaskInput] = Field(
        default_factory=list,
        description="空列表直接返回空结果",
    )


class SubtaskInput(BaseModel):
    """拆解出的子任务"""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str | None = None
    goal: str | None = None
    effort: int
    effort_reason: str | None = None
    complexity_bias: ComplexityBias | None = None
    sequence_order: int | None = Field(
        default=None,
        ge=1,
        description="执行顺序：1 最先执行，相同序号可并行",
    )
    assignee: str | None = None
    uncertainties: list[UncertaintyInput] = Field(default_factory=list)


class DecomposeTaskInput(BaseModel):
    """decompose_task 输入"""

    model_config = ConfigDict(extra="forbid")

    task_id: str = Field(min_length=1)
    decomposition_reason: str | None = None
    subtasks: list[SubtaskInput] = Field(min_length=1)


class TaskUpdateSet(BaseModel):
    """set 操作 -- 分为 core patch 与 effort patch 两个通道"""

    model_config = ConfigDict(extra="forbid")

    status: TaskStatus | None = None
    description: str | None = None
    assignee: str | None = None
    due_date: str | None = None
    effort: int | None = None
    effort_reason: str | None = None
    complexity_bias: ComplexityBias | None = None


class TaskUpdateAdd(BaseModel):
    """add 操作"""

    model_config = ConfigDict(extra="forbid")

    lessons_learned: list[LessonLearned] = Field(default_factory=list)
    labels: list[Annotated[str, Field(min_length=1)]] = Field(default_factory=list)
    uncertainties: list[UncertaintyInput] = Field(default_factory=list)


class TaskUpdateRemove(BaseModel):
    """remove 操作（标签精确匹配）"""

    model_config = ConfigDict(extra="forbid")

    labels: list[str] = Field(default_factory=list)


class ResolveUncertaintyItem(BaseModel):
    """按精确标题解决一个不确定性"""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    resolution: str = Field(min_length=1)


class TaskUpdateResolve(BaseModel):
    """resolve 操作"""

    model_config = ConfigDict(extra="forbid")

    uncertainties: list[ResolveUncertaintyItem] = Field(min_length=1)


class TaskUpdateOperation(BaseModel):
    """单个任务的声明式更新"""

    model_config = ConfigDict(extra="forbid")

    task_id: str = Field(min_length=1)
    set: TaskUpdateSet | None = None
    add: TaskUpdateAdd | None = None
    remove: TaskUpdateRemove | None = None
    resolve: TaskUpdateResolve | None = None


class UpdateTaskInput(BaseModel):
    """update_task 输入 -- 按数组顺序依次处理"""

    model_config = ConfigDict(extra="forbid")

    tasks: list[TaskUpdateOperation] = Field(min_length=1)


class TaskFilter(BaseModel):
    """发现查询的过滤条件，各子句按 AND 依次收窄"""

    model_config = ConfigDict(extra="forbid")

    project: str | None = None
    status_in: list[TaskStatus] | None = None
    labels_has_every: list[str] | None = None
    has_unresolved_uncertainties: bool | None = None
    ready: bool | None = None
    search: str | None = Field(
        default=None,
        description="标题或描述的大小写不敏感子串匹配",
    )


class ListTasksInput(BaseModel):
    """list_tasks 输入"""

    model_config = ConfigDict(extra="forbid")

    filter: TaskFilter | None = None
    limit: int | None = Field(default=None, ge=1, le=100)
    after: str | None = None


class TaskBulkOperation(BaseModel):
    """query_tasks 对每个命中任务执行的操作"""

    model_config = ConfigDict(extra="forbid")

    set: TaskUpdateSet | None = None
    add: TaskUpdateAdd | None = None
    remove: TaskUpdateRemove | None = None
    resolve: TaskUpdateResolve | None = None

    def is_empty(self) -> bool:
        return (
            self.set is None
            and self.add is None
            and self.remove is None
            and self.resolve is None
        )


class QueryTasksInput(BaseModel):
    """query_tasks 输入"""

    model_config = ConfigDict(extra="forbid")

    filter: TaskFilter = Field(default_factory=TaskFilter)
    limit: int = Field(default=20, ge=1, le=100)
    after: str | None = None
    operation: TaskBulkOperation


class ResolveUncertaintyInput(BaseModel):
    """resolve_uncertainty 输入 -- 可选沉淀为知识库决策"""

    model_config = ConfigDict(extra="forbid")

    task_id: str = Field(min_length=1)
    uncertainty_title: str = Field(min_length=1)
    resolution: str = Field(min_length=1)
    extract_to_knowledge: bool = False
    scope: KnowledgeScope = KnowledgeScope.PROJECT
    tags: list[str] = Field(default_factory=list)


class ExtractLessonInput(BaseModel):
    """extract_lesson 输入"""

    model_config = ConfigDict(extra="forbid")

    task_id: str = Field(min_length=1)
    lesson: LessonLearned
    scope: KnowledgeScope = KnowledgeScope.PROJECT
    related_concepts: list[str] = Field(default_factory=list)

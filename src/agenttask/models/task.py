"""Task Domain Model

Task 是外部 tracker issue 的规范视图：
description 已剥离元数据块，元数据字段（goal/effort/uncertainties/lessons）
由 MetadataCodec 从 issue 描述中解码得到。
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .enums import ComplexityBias, DependencyType, LessonCategory, TaskStatus


class Uncertainty(BaseModel):
    """不确定性 -- 按标题去重（忽略大小写与首尾空白）

    resolution 或 resolved_at 任一存在即视为已解决。
    """

    title: str = Field(min_length=1, description="标题，去重键")
    description: str | None = Field(default=None, description="问题描述")
    resolution: str | None = Field(default=None, description="解决结论")
    resolved_at: str | None = Field(default=None, description="解决时间（ISO 8601 文本）")
    resolved_by: str | None = Field(default=None, description="解决人")


class LessonLearned(BaseModel):
    """经验记录 -- append-only，不去重"""

    content: str = Field(min_length=1, description="经验内容")
    category: LessonCategory | None = Field(default=None, description="经验分类")
    tags: list[str] = Field(default_factory=list, description="标签，仅追加")


class TaskDependency(BaseModel):
    """任务依赖"""

    task_id: str = Field(min_length=1, description="被依赖任务 ID")
    type: DependencyType = Field(description="依赖类型")


class IssueMetadata(BaseModel):
    """嵌入在 issue 描述中的结构化工作流元数据"""

    goal: str | None = Field(default=None, description="任务目标")
    effort: int = Field(default=5, description="effort 序数值")
    effort_reason: str | None = Field(default=None, description="effort 取值理由")
    complexity_bias: ComplexityBias | None = Field(default=None, description="复杂度偏向")
    uncertainties: list[Uncertainty] = Field(default_factory=list, description="不确定性列表")
    lessons_learned: list[LessonLearned] = Field(
        default_factory=list,
        description="经验列表",
    )


class Task(BaseModel):
    """Task 数据模型

    labels 语义上是集合，但保持插入顺序；
    subtasks 可能只填充了一层（子任务不再携带自身的 subtasks）。
    """

    task_id: str = Field(description="tracker 内部 ID")
    issue_key: str | None = Field(default=None, description="人类可读编号（如 TASK-12）")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="已剥离元数据块的纯文本描述")
    goal: str | None = Field(default=None, description="任务目标")
    effort: int = Field(default=5, description="effort 序数值")
    effort_reason: str | None = Field(default=None, description="effort 取值理由")
    complexity_bias: ComplexityBias | None = Field(default=None, description="复杂度偏向")
    status: TaskStatus = Field(default=TaskStatus.BACKLOG, description="当前状态")
    project: str | None = Field(default=None, description="外部项目 ID")
    parent_task_id: str | None = Field(default=None, description="父任务 ID")
    subtasks: list[Task] | None = Field(default=None, description="子任务（可能部分填充）")
    uncertainties: list[Uncertainty] = Field(default_factory=list, description="不确定性列表")
    lessons_learned: list[LessonLearned] = Field(default_factory=list, description="经验列表")
    dependencies: list[TaskDependency] = Field(default_factory=list, description="依赖列表")
    assignee: str | None = Field(default=None, description="负责人")
    due_date: str | None = Field(default=None, description="截止日期")
    labels: list[str] = Field(default_factory=list, description="标签（有序集合）")

    @property
    def display_key(self) -> str:
        """日志与提示中使用的任务标识"""
        return self.issue_key or self.task_id

"""编排结果模型

每个编排操作返回结构化结果，并附带本次请求产生的提示（advisories）。
提示是非致命信息，同时也会写入日志。
"""

from typing import Any

from pydantic import BaseModel, Field

from .task import Task


class TaskPage(BaseModel):
    """分页任务列表"""

    tasks: list[Task] = Field(default_factory=list)
    has_next_page: bool = Field(default=False)
    end_cursor: str | None = Field(default=None, description="下一页游标（最后一个任务 ID）")


class CreateTaskResult(BaseModel):
    task: Task
    advisories: list[str] = Field(default_factory=list)


class BatchCreateResult(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    advisories: list[str] = Field(default_factory=list)


class DecomposeResult(BaseModel):
    parent_id: str
    subtasks: list[Task] = Field(default_factory=list)
    advisories: list[str] = Field(default_factory=list)


class UpdateTaskResult(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    advisories: list[str] = Field(default_factory=list)


class QueryTasksResult(BaseModel):
    """query_tasks 结果

    matched 为过滤后的命中数，updated 为实际执行更新的任务数。
    """

    matched: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    tasks: list[Task] = Field(default_factory=list)
    advisories: list[str] = Field(default_factory=list)


class TaskDetails(BaseModel):
    """get_task_details 结果，tree 为 父任务 ID -> 直接子任务"""

    tasks: list[Task] = Field(default_factory=list)
    tree: dict[str, list[Task]] | None = Field(default=None)


class KnowledgeSearchResult(BaseModel):
    """知识库检索结果"""

    id: str | None = None
    path: str | None = None
    title: str
    content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

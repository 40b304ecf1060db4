"""写入意图 -- 编排层交给外部存储的写操作描述

tracker 把数值估算与描述内嵌元数据分开存放，
因此一次 set 会拆成 CorePatch 与 EffortPatch 两个独立通道。
"""

from pydantic import BaseModel, Field

from .enums import ComplexityBias, TaskStatus
from .task import IssueMetadata


class CorePatch(BaseModel):
    """core patch 通道：status / description / assignee / due_date"""

    task_id: str
    status: TaskStatus | None = None
    description: str | None = Field(default=None, description="新的纯文本描述，元数据块保持不变")
    assignee: str | None = None
    due_date: str | None = None

    def is_empty(self) -> bool:
        return (
            self.status is None
            and self.description is None
            and self.assignee is None
            and self.due_date is None
        )


class EffortPatch(BaseModel):
    """effort patch 通道：effort / effort_reason / complexity_bias"""

    task_id: str
    effort: int | None = None
    effort_reason: str | None = None
    complexity_bias: ComplexityBias | None = None

    def is_empty(self) -> bool:
        return self.effort is None and self.effort_reason is None and self.complexity_bias is None


class NewTask(BaseModel):
    """创建请求 -- 标签已包含合成标签，项目已解析为外部 ID"""

    title: str = Field(min_length=1)
    description: str = Field(default="", description="纯文本描述")
    metadata: IssueMetadata
    project_id: str | None = None
    parent_task_id: str | None = None
    assignee: str | None = None
    due_date: str | None = None
    labels: list[str] = Field(default_factory=list)

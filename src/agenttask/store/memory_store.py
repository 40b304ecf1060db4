"""InMemoryTaskStore -- 只有自由文本描述字段的 tracker 内存实现

模拟没有结构化元数据支持的 issue tracker：
issue 只保存标题、描述原文、状态、标签等宿主字段，
goal/effort/uncertainties/lessons 全部经 MetadataCodec 写入描述、再从描述解码。
"""

from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field
from ulid import ULID

from ..codec import MetadataCodec
from ..exceptions import TaskNotFound, UncertaintyNotFound
from ..models.enums import TaskStatus
from ..models.patches import CorePatch, EffortPatch, NewTask
from ..models.results import TaskPage
from ..models.task import LessonLearned, Task, TaskDependency, Uncertainty

log = structlog.get_logger()


class IssueRecord(BaseModel):
    """tracker 侧的 issue 原始记录"""

    issue_id: str
    identifier: str
    title: str
    description: str = Field(default="", description="描述原文（含元数据块）")
    status: TaskStatus = TaskStatus.BACKLOG
    project_id: str | None = None
    parent_id: str | None = None
    assignee: str | None = None
    due_date: str | None = None
    estimate: int | None = Field(default=None, description="宿主的数值估算字段")
    labels: list[str] = Field(default_factory=list)
    dependencies: list[TaskDependency] = Field(default_factory=list)
    comments: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class InMemoryTaskStore:
    """TaskStore 的内存实现"""

    def __init__(self, codec: MetadataCodec | None = None, key_prefix: str = "TASK") -> None:
        self._codec = codec or MetadataCodec()
        self._key_prefix = key_prefix
        self._issues: dict[str, IssueRecord] = {}
        self._sequence = 0

    # ---- 读取 ----

    async def get_task(self, task_id: str) -> Task | None:
        record = self._issues.get(task_id)
        return self._to_task(record) if record else None

    async def list_tasks(
        self,
        project_id: str | None = None,
        limit: int = 20,
        after: str | None = None,
    ) -> TaskPage:
        records = [
            record
            for record in self._issues.values()
            if project_id is None or record.project_id == project_id
        ]
        if after is not None:
            ids = [record.issue_id for record in records]
            start = ids.index(after) + 1 if after in ids else len(records)
            records = records[start:]

        page = records[:limit]
        has_next_page = len(records) > limit
        return TaskPage(
            tasks=[self._to_task(record) for record in page],
            has_next_page=has_next_page,
            end_cursor=page[-1].issue_id if page else None,
        )

    # ---- 创建 ----

    async def create_task(self, new_task: NewTask) -> Task:
        record = self._insert(new_task, parent_id=None)
        log.debug("issue_created", issue_id=record.issue_id, identifier=record.identifier)
        return self._to_task(record)

    async def create_subtask(self, parent_task_id: str, new_task: NewTask) -> Task:
        self._require(parent_task_id)
        record = self._insert(new_task, parent_id=parent_task_id)
        log.debug(
            "subissue_created",
            issue_id=record.issue_id,
            parent_id=parent_task_id,
        )
        return self._to_task(record)

    # ---- 更新 ----

    async def update_task_core(self, patch: CorePatch) -> Task:
        record = self._require(patch.task_id)
        if patch.status is not None:
            record.status = patch.status
        if patch.description is not None:
            # 替换纯文本，保留原有元数据
            metadata = self._codec.decode(record.description)
            record.description = self._codec.encode(patch.description, metadata)
        if patch.assignee is not None:
            record.assignee = patch.assignee
        if patch.due_date is not None:
            record.due_date = patch.due_date
        return self._to_task(record)

    async def update_task_effort(self, patch: EffortPatch) -> None:
        record = self._require(patch.task_id)
        metadata = self._codec.decode(record.description)
        if patch.effort is not None:
            metadata.effort = patch.effort
            record.estimate = patch.effort
        if patch.effort_reason is not None:
            metadata.effort_reason = patch.effort_reason
        if patch.complexity_bias is not None:
            metadata.complexity_bias = patch.complexity_bias
        record.description = self._codec.rewrite(record.description, metadata)

    async def set_labels(self, task_id: str, labels: list[str]) -> Task:
        record = self._require(task_id)
        record.labels = list(dict.fromkeys(labels))
        return self._to_task(record)

    async def append_uncertainties(self, task_id: str, uncertainties: list[Uncertainty]) -> None:
        record = self._require(task_id)
        metadata = self._codec.decode(record.description)
        metadata.uncertainties.extend(uncertainties)
        record.description = self._codec.rewrite(record.description, metadata)

    async def resolve_uncertainty(
        self,
        task_id: str,
        title: str,
        resolution: str,
        resolved_at: str,
    ) -> None:
        record = self._require(task_id)
        metadata = self._codec.decode(record.description)
        for uncertainty in metadata.uncertainties:
            if uncertainty.title == title:
                uncertainty.resolution = resolution
                uncertainty.resolved_at = resolved_at
                break
        else:
            raise UncertaintyNotFound(task_id, title)
        record.description = self._codec.rewrite(record.description, metadata)
        record.comments.append(f"**Uncertainty Resolved:** {title}\n\n{resolution}")

    async def append_lesson(self, task_id: str, lesson: LessonLearned) -> None:
        record = self._require(task_id)
        metadata = self._codec.decode(record.description)
        metadata.lessons_learned.append(lesson)
        record.description = self._codec.rewrite(record.description, metadata)

    async def add_dependencies(self, task_id: str, dependencies: list[TaskDependency]) -> None:
        record = self._require(task_id)
        for dependency in dependencies:
            if dependency not in record.dependencies:
                record.dependencies.append(dependency)
        record.comments.append(
            "**Dependencies:** "
            + ", ".join(f"{d.type.value} {d.task_id}" for d in dependencies)
        )

    async def add_comment(self, task_id: str, body: str) -> None:
        self._require(task_id).comments.append(body)

    # ---- 宿主侧辅助（模拟 tracker 中的人工编辑） ----

    def raw_issue(self, task_id: str) -> IssueRecord:
        """返回 issue 原始记录"""
        return self._require(task_id)

    def put_raw_issue(
        self,
        title: str,
        description: str = "",
        status: TaskStatus = TaskStatus.BACKLOG,
        parent_id: str | None = None,
        labels: list[str] | None = None,
        project_id: str | None = None,
    ) -> str:
        """直接写入一条 issue（描述原文不经编码），返回 issue ID"""
        record = self._new_record(
            title=title,
            description=description,
            status=status,
            parent_id=parent_id,
            labels=labels or [],
            project_id=project_id,
        )
        self._issues[record.issue_id] = record
        return record.issue_id

    # ---- 内部 ----

    def _require(self, task_id: str) -> IssueRecord:
        record = self._issues.get(task_id)
        if record is None:
            raise TaskNotFound(task_id)
        return record

    def _new_record(self, **fields) -> IssueRecord:
        self._sequence += 1
        return IssueRecord(
            issue_id=str(ULID()),
            identifier=f"{self._key_prefix}-{self._sequence}",
            **fields,
        )

    def _insert(self, new_task: NewTask, parent_id: str | None) -> IssueRecord:
        record = self._new_record(
            title=new_task.title,
            description=self._codec.encode(new_task.description, new_task.metadata),
            project_id=new_task.project_id,
            parent_id=parent_id,
            assignee=new_task.assignee,
            due_date=new_task.due_date,
            estimate=new_task.metadata.effort,
            labels=list(dict.fromkeys(new_task.labels)),
        )
        self._issues[record.issue_id] = record
        return record

    def _to_task(self, record: IssueRecord, include_children: bool = True) -> Task:
        metadata = self._codec.decode(record.description)
        subtasks = None
        if include_children:
            children = [
                self._to_task(child, include_children=False)
                for child in self._issues.values()
                if child.parent_id == record.issue_id
            ]
            subtasks = children or None

        return Task(
            task_id=record.issue_id,
            issue_key=record.identifier,
            title=record.title,
            description=self._codec.strip_metadata(record.description),
            goal=metadata.goal,
            effort=metadata.effort,
            effort_reason=metadata.effort_reason,
            complexity_bias=metadata.complexity_bias,
            status=record.status,
            project=record.project_id,
            parent_task_id=record.parent_id,
            subtasks=subtasks,
            uncertainties=metadata.uncertainties,
            lessons_learned=metadata.lessons_learned,
            dependencies=list(record.dependencies),
            assignee=record.assignee,
            due_date=record.due_date,
            labels=list(record.labels),
        )

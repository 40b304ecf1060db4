"""WorkflowOrchestrator -- 请求处理编排

把项目解析、effort/不确定性策略、批量更新、子树完成判断与过滤
组合成面向调用方 agent 的操作：
1. 解析项目（ProjectResolver）
2. 校验输入（EffortPolicy / UncertaintyPolicy），全部通过后才写外部存储
3. 经 TaskStore 读写，元数据在存储内部经 MetadataCodec 往返
4. 后处理（子树完成检查、过滤）

提示（advisory）既写日志也随结果返回；编排器本身不持有跨请求的可变状态。
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from .config import WorkflowConfig
from .domain.effort import (
    NEEDS_DECOMPOSITION_LABEL,
    assert_valid_effort,
    effort_labels,
    effort_reason_advisory,
    low_effort_advisory,
    needs_decomposition,
)
from .domain.filters import filter_tasks
from .domain.projects import ProjectResolver
from .domain.tree import find_root_task, is_entire_tree_done
from .domain.uncertainty import (
    decomposition_guard,
    normalize_uncertainties,
    validate_for_creation,
)
from .domain.updates import TaskUpdateApplier, remove_labels, union_labels
from .exceptions import (
    BatchIndexOutOfRange,
    BatchTooLarge,
    ConfigurationError,
    DecompositionNotRequired,
    EmptyOperation,
    ForwardDependency,
    SelfDependency,
    TaskNotFound,
    UncertaintyNotFound,
)
from .logging_config import bind_operation
from .models.enums import READY_STATUSES, DependencyType, TaskStatus, UncertaintyMode
from .models.inputs import (
    BatchCreateTasksInput,
    CreateTaskInput,
    DecomposeTaskInput,
    ExtractLessonInput,
    ListTasksInput,
    QueryTasksInput,
    ResolveUncertaintyInput,
    SubtaskInput,
    TaskFilter,
    TaskUpdateOperation,
    UpdateTaskInput,
)
from .models.patches import NewTask
from .models.results import (
    BatchCreateResult,
    CreateTaskResult,
    DecomposeResult,
    KnowledgeSearchResult,
    QueryTasksResult,
    TaskDetails,
    TaskPage,
    UpdateTaskResult,
)
from .models.task import IssueMetadata, Task, TaskDependency, Uncertainty
from .store.protocols import KnowledgeStore, TaskStore

log = structlog.get_logger()

# 不确定性数量达到此值时追加研究 spike 建议
HIGH_UNCERTAINTY_COUNT = 4


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class WorkflowOrchestrator:
    """工作流编排器"""

    def __init__(
        self,
        config: WorkflowConfig,
        task_store: TaskStore,
        knowledge_store: KnowledgeStore | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        """
        Args:
            config: 工作流配置（项目映射、不确定性模式、批量上限）
            task_store: 外部任务存储
            knowledge_store: 知识库，None 表示不支持经验/决策沉淀
            clock: 返回当前时间 ISO 文本
        """
        self._config = config
        self._store = task_store
        self._knowledge = knowledge_store
        self._clock = clock or _utc_now
        self._resolver = ProjectResolver.from_config(config)
        self._applier = TaskUpdateApplier(task_store, clock=self._clock)

    @property
    def uncertainty_mode(self) -> UncertaintyMode:
        return self._config.uncertainty_mode

    # ---- 创建 ----

    async def create_task(self, request: CreateTaskInput) -> CreateTaskResult:
        """创建任务：先完成全部校验，再写外部存储

        Raises:
            UnknownProject: 指定的项目未配置
            InvalidEffort: effort 不在合法集合内
            MissingUncertainties: effort > 3 但没有不确定性
        """
        bind_operation("create_task", title=request.title)
        project_key = self._resolver.resolve(request.project)
        assert_valid_effort(request.effort)
        uncertainties = normalize_uncertainties(request.uncertainties)
        validate_for_creation(request.title, request.effort, uncertainties)

        advisories: list[str] = []
        self._advise(advisories, effort_reason_advisory(request.effort, request.effort_reason))
        self._advise(advisories, low_effort_advisory(request.effort))

        task = await self._store.create_task(
            self._build_new_task(
                request, self._resolver.external_id_for(project_key), uncertainties
            )
        )

        if request.dependencies:
            await self._store.add_dependencies(task.task_id, request.dependencies)
            task = await self._reload(task.task_id)

        if needs_decomposition(request.effort):
            self._advise(
                advisories,
                f"Task {task.display_key} requires decomposition before work can begin "
                f"(effort: {request.effort})",
            )
            if len(uncertainties) >= HIGH_UNCERTAINTY_COUNT:
                self._advise(
                    advisories,
                    f"High uncertainty count ({len(uncertainties)}). Create research spike "
                    "tasks to resolve uncertainties, decompose after research completes, and "
                    "document assumptions that cannot be resolved upfront.",
                )

        log.info("task_created", task_id=task.task_id, issue_key=task.issue_key)
        return CreateTaskResult(task=task, advisories=advisories)

    async def batch_create_tasks(self, request: BatchCreateTasksInput) -> BatchCreateResult:
        """批量创建：全部校验通过后按顺序创建，最后补充批内依赖

        Raises:
            BatchTooLarge: 超过配置的批量上限
            UnknownProject / InvalidEffort / MissingUncertainties: 任一条目非法
            BatchIndexOutOfRange / SelfDependency / ForwardDependency: 批内依赖非法
        """
        items = request.tasks
        bind_operation("batch_create_tasks", size=len(items))
        if not items:
            return BatchCreateResult()

        limit = self._config.batch_max_size
        if len(items) > limit:
            raise BatchTooLarge(len(items), limit)

        advisories: list[str] = []
        prepared: list[tuple[str | None, list[Uncertainty]]] = []

        for position, item in enumerate(items):
            project_key = self._resolver.resolve(item.project)
            assert_valid_effort(item.effort, context=f'Task {position} ("{item.title}")')
            uncertainties = normalize_uncertainties(item.uncertainties)
            validate_for_creation(item.title, item.effort, uncertainties)

            for index in item.depends_on_batch_index:
                if index < 0 or index >= len(items):
                    raise BatchIndexOutOfRange(position, index, len(items))
                if index == position:
                    raise SelfDependency(position)
                if index > position:
                    raise ForwardDependency(position, index)

            reason_advisory = effort_reason_advisory(item.effort, item.effort_reason)
            if reason_advisory:
                self._advise(advisories, f'Task {position} ("{item.title}"): {reason_advisory}')
            prepared.append((project_key, uncertainties))

        created: list[Task] = []
        for item, (project_key, uncertainties) in zip(items, prepared):
            created.append(
                await self._store.create_task(
                    self._build_new_task(
                        item, self._resolver.external_id_for(project_key), uncertainties
                    )
                )
            )

        for position, item in enumerate(items):
            dependencies = [
                TaskDependency(task_id=created[index].task_id, type=DependencyType.BLOCKED_BY)
                for index in item.depends_on_batch_index
            ]
            dependencies.extend(item.dependencies)
            if not dependencies:
                continue
            await self._store.add_dependencies(created[position].task_id, dependencies)
            created[position] = await self._reload(created[position].task_id)

        pending = sum(1 for task in created if needs_decomposition(task.effort))
        if pending:
            self._advise(
                advisories,
                f"{pending} task(s) require decomposition before execution (use decompose_task)",
            )

        log.info("batch_created", count=len(created))
        return BatchCreateResult(tasks=created, advisories=advisories)

    # ---- 拆解 ----

    async def decompose_task(self, request: DecomposeTaskInput) -> DecomposeResult:
        """把 effort > 3 的任务拆成子任务

        Raises:
            TaskNotFound: 父任务不存在
            UnresolvedUncertainties: block 模式下父任务仍有未解决的不确定性
            InvalidEffort / MissingUncertainties: 任一子任务非法
            DecompositionNotRequired: 父任务 effort <= 3
        """
        bind_operation("decompose_task", task_id=request.task_id)
        parent = await self._store.get_task(request.task_id)
        if parent is None:
            raise TaskNotFound(request.task_id)

        advisories: list[str] = []
        guard_advisory = decomposition_guard(parent, self.uncertainty_mode)
        if guard_advisory:
            advisories.append(guard_advisory)
            log.warning("decomposition_with_unresolved_uncertainties", task_id=parent.task_id)

        prepared: list[list[Uncertainty]] = []
        for subtask in request.subtasks:
            assert_valid_effort(subtask.effort, context=f'Subtask "{subtask.title}"')
            uncertainties = normalize_uncertainties(subtask.uncertainties)
            validate_for_creation(subtask.title, subtask.effort, uncertainties)
            reason_advisory = effort_reason_advisory(subtask.effort, subtask.effort_reason)
            if reason_advisory:
                self._advise(advisories, f'Subtask "{subtask.title}": {reason_advisory}')
            prepared.append(uncertainties)

        if not needs_decomposition(parent.effort):
            raise DecompositionNotRequired(parent.task_id, parent.effort)

        if request.decomposition_reason:
            await self._store.add_comment(
                parent.task_id,
                f"**Decomposition Reason:** {request.decomposition_reason}",
            )

        created: list[Task] = []
        for subtask, uncertainties in zip(request.subtasks, prepared):
            new_task = self._build_new_task(subtask, parent.project, uncertainties)
            created.append(await self._store.create_subtask(parent.task_id, new_task))

        if NEEDS_DECOMPOSITION_LABEL in parent.labels:
            await self._store.set_labels(
                parent.task_id, remove_labels(parent.labels, [NEEDS_DECOMPOSITION_LABEL])
            )

        self._advise(
            advisories,
            f"Task {parent.display_key} decomposed into {len(created)} subtasks. Ready for work.",
        )
        return DecomposeResult(parent_id=parent.task_id, subtasks=created, advisories=advisories)

    # ---- 更新 ----

    async def update_task(self, request: UpdateTaskInput) -> UpdateTaskResult:
        """批量更新；置为 done 的任务会检查所在整棵树是否完成

        Raises:
            TaskNotFound / UncertaintyNotFound: 失败时前序条目已生效，不回滚
        """
        bind_operation("update_task", size=len(request.tasks))
        updated = await self._applier.apply(request.tasks)

        advisories: list[str] = []
        announced: set[str] = set()
        for operation, task in zip(request.tasks, updated):
            if not operation.set or operation.set.status != TaskStatus.DONE:
                continue
            root = await find_root_task(task, self._store.get_task)
            if root.task_id in announced:
                continue
            if await is_entire_tree_done(root, self._store.get_task):
                announced.add(root.task_id)
                self._advise(
                    advisories,
                    f"Entire task tree completed: {root.display_key} - {root.title}. "
                    "Consider extracting consolidated lessons with extract_lesson.",
                )

        return UpdateTaskResult(tasks=updated, advisories=advisories)

    async def query_tasks(self, request: QueryTasksInput) -> QueryTasksResult:
        """按过滤条件选出任务，再对每个命中任务执行同一操作

        Raises:
            EmptyOperation: operation 未包含 set/add/remove/resolve（不访问存储）
        """
        bind_operation("query_tasks", limit=request.limit)
        operation = request.operation
        if operation.is_empty():
            raise EmptyOperation()

        page = await self.list_tasks(
            ListTasksInput(filter=request.filter, limit=request.limit, after=request.after)
        )
        selected = page.tasks[: request.limit]
        if not selected:
            return QueryTasksResult(matched=len(page.tasks), updated=0)

        result = await self.update_task(
            UpdateTaskInput(
                tasks=[
                    TaskUpdateOperation(
                        task_id=task.task_id,
                        set=operation.set,
                        add=operation.add,
                        remove=operation.remove,
                        resolve=operation.resolve,
                    )
                    for task in selected
                ]
            )
        )
        return QueryTasksResult(
            matched=len(page.tasks),
            updated=len(result.tasks),
            tasks=result.tasks,
            advisories=result.advisories,
        )

    # ---- 查询 ----

    async def list_tasks(self, request: ListTasksInput | None = None) -> TaskPage:
        """从存储取一页任务后做内存过滤；ready 过滤默认限定 todo/backlog"""
        request = request or ListTasksInput()
        criteria = request.filter
        project_id = None
        if criteria and criteria.project:
            project_id = self._resolver.external_id_for(self._resolver.resolve(criteria.project))

        page = await self._store.list_tasks(
            project_id=project_id,
            limit=request.limit or self._config.query_default_limit,
            after=request.after,
        )
        ready_statuses = READY_STATUSES if criteria and criteria.ready else None
        return TaskPage(
            tasks=filter_tasks(page.tasks, criteria, ready_statuses=ready_statuses),
            has_next_page=page.has_next_page,
            end_cursor=page.end_cursor,
        )

    async def get_ready_tasks(self, limit: int = 10) -> list[Task]:
        """无未解决不确定性、无需拆解的 todo/backlog 任务"""
        page = await self.list_tasks(
            ListTasksInput(
                filter=TaskFilter(ready=True, status_in=list(READY_STATUSES)),
                limit=limit,
            )
        )
        return page.tasks

    async def get_task(self, task_id: str) -> Task | None:
        return await self._store.get_task(task_id)

    async def get_task_details(
        self,
        task_ids: str | list[str],
        include_tree: bool = False,
    ) -> TaskDetails:
        """查询一个或多个任务，可选展开后代树（父任务 ID -> 直接子任务）"""
        ids = [task_ids] if isinstance(task_ids, str) else task_ids
        tasks: list[Task] = []
        tree: dict[str, list[Task]] | None = {} if include_tree else None

        for task_id in ids:
            task = await self._store.get_task(task_id)
            if task is None:
                continue
            tasks.append(task)
            if tree is not None:
                await self._build_tree(task, tree)

        return TaskDetails(tasks=tasks, tree=tree)

    async def _build_tree(self, task: Task, tree: dict[str, list[Task]]) -> None:
        if task.task_id in tree or not task.subtasks:
            return
        children: list[Task] = []
        for stub in task.subtasks:
            children.append(await self._store.get_task(stub.task_id) or stub)
        tree[task.task_id] = children
        for child in children:
            await self._build_tree(child, tree)

    # ---- 知识沉淀 ----

    async def resolve_uncertainty(self, request: ResolveUncertaintyInput) -> str | None:
        """解决不确定性，可选沉淀为知识库决策

        Returns:
            知识库引用；未要求沉淀时返回 None
        """
        bind_operation("resolve_uncertainty", task_id=request.task_id)
        task = await self._store.get_task(request.task_id)
        if task is None:
            raise TaskNotFound(request.task_id)
        if not any(u.title == request.uncertainty_title for u in task.uncertainties):
            raise UncertaintyNotFound(request.task_id, request.uncertainty_title)

        await self._store.resolve_uncertainty(
            request.task_id,
            request.uncertainty_title,
            request.resolution,
            resolved_at=self._clock(),
        )
        log.info("uncertainty_resolved", title=request.uncertainty_title)

        if not request.extract_to_knowledge:
            return None

        knowledge = self._require_knowledge()
        task = await self._reload(request.task_id)
        uncertainty = next(u for u in task.uncertainties if u.title == request.uncertainty_title)
        reference = await knowledge.create_decision(
            task.task_id,
            task.title,
            uncertainty,
            project=self._resolver.resolve_from_external_id(task.project),
            scope=request.scope,
            tags=request.tags,
        )
        log.info("decision_extracted", scope=request.scope.value, reference=reference)
        return reference

    async def extract_lesson(self, request: ExtractLessonInput) -> str:
        """把经验追加到任务并写入知识库，返回知识库引用"""
        bind_operation("extract_lesson", task_id=request.task_id)
        task = await self._store.get_task(request.task_id)
        if task is None:
            raise TaskNotFound(request.task_id)
        knowledge = self._require_knowledge()

        await self._store.append_lesson(task.task_id, request.lesson)
        reference = await knowledge.create_lesson(
            task.task_id,
            task.title,
            request.lesson,
            project=self._resolver.resolve_from_external_id(task.project),
            scope=request.scope,
            related_concepts=request.related_concepts,
            effort_details={
                "effort": task.effort,
                "effort_reason": task.effort_reason,
                "complexity_bias": task.complexity_bias.value if task.complexity_bias else None,
            },
        )
        log.info("lesson_extracted", scope=request.scope.value, reference=reference)
        return reference

    async def search_lessons(
        self,
        query: str,
        project: str | None = None,
    ) -> list[KnowledgeSearchResult]:
        return await self._require_knowledge().search_lessons(query, project)

    # ---- 内部 ----

    def _require_knowledge(self) -> KnowledgeStore:
        if self._knowledge is None:
            raise ConfigurationError("No knowledge store configured")
        return self._knowledge

    async def _reload(self, task_id: str) -> Task:
        task = await self._store.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def _build_new_task(
        self,
        item: CreateTaskInput | SubtaskInput,
        project_id: str | None,
        uncertainties: list[Uncertainty],
    ) -> NewTask:
        metadata = IssueMetadata(
            goal=item.goal,
            effort=item.effort,
            effort_reason=item.effort_reason,
            complexity_bias=item.complexity_bias,
            uncertainties=uncertainties,
        )
        user_labels = getattr(item, "labels", [])
        return NewTask(
            title=item.title,
            description=item.description or "",
            metadata=metadata,
            project_id=project_id,
            assignee=item.assignee,
            due_date=getattr(item, "due_date", None),
            labels=union_labels(user_labels, effort_labels(item.effort)),
        )

    @staticmethod
    def _advise(advisories: list[str], message: str | None) -> None:
        if not message:
            return
        advisories.append(message)
        log.info("advisory", message=message)

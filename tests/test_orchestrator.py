"""WorkflowOrchestrator 集成测试（内存 tracker + 内存知识库）"""

from unittest.mock import AsyncMock

import pytest
from agenttask.config import WorkflowConfig
from agenttask.exceptions import (
    BatchIndexOutOfRange,
    BatchTooLarge,
    ConfigurationError,
    DecompositionNotRequired,
    EmptyOperation,
    ForwardDependency,
    InvalidEffort,
    MissingUncertainties,
    SelfDependency,
    TaskNotFound,
    UncertaintyNotFound,
    UnknownProject,
    UnresolvedUncertainties,
)
from agenttask.models.enums import (
    DependencyType,
    KnowledgeScope,
    LessonCategory,
    TaskStatus,
    UncertaintyMode,
)
from agenttask.models.inputs import (
    BatchCreateTasksInput,
    CreateTaskInput,
    DecomposeTaskInput,
    ExtractLessonInput,
    ListTasksInput,
    QueryTasksInput,
    ResolveUncertaintyInput,
    SubtaskInput,
    TaskBulkOperation,
    TaskFilter,
    TaskUpdateAdd,
    TaskUpdateOperation,
    TaskUpdateSet,
    UpdateTaskInput,
)
from agenttask.models.task import LessonLearned, TaskDependency
from agenttask.orchestrator import WorkflowOrchestrator

NOW = "2024-05-01T12:00:00+00:00"


def _large(title: str = "Importer", **overrides) -> CreateTaskInput:
    values = {
        "title": title,
        "effort": 8,
        "effort_reason": "Three integrations",
        "uncertainties": ["Data format"],
    }
    values.update(overrides)
    return CreateTaskInput(**values)


async def _decompose_ready_parent(orchestrator, store) -> str:
    result = await orchestrator.create_task(_large(labels=["backend"]))
    return result.task.task_id


class TestCreateTask:
    """create_task"""

    async def test_large_effort_task(self, orchestrator, store):
        result = await orchestrator.create_task(_large(labels=["backend"]))
        task = result.task
        assert task.effort == 8
        assert task.labels == ["backend", "effort:8", "needs-decomposition"]
        assert task.project == "proj-alpha"
        assert [u.title for u in task.uncertainties] == ["Data format"]
        assert any("requires decomposition" in a for a in result.advisories)

    async def test_invalid_effort(self, orchestrator, store):
        with pytest.raises(InvalidEffort):
            await orchestrator.create_task(_large(effort=4))
        assert (await store.list_tasks()).tasks == []

    async def test_missing_uncertainties(self, orchestrator, store):
        with pytest.raises(MissingUncertainties):
            await orchestrator.create_task(_large(uncertainties=[]))
        assert (await store.list_tasks()).tasks == []

    async def test_blank_uncertainties_count_as_missing(self, orchestrator):
        with pytest.raises(MissingUncertainties):
            await orchestrator.create_task(_large(uncertainties=["   "]))

    async def test_unknown_project(self, orchestrator):
        with pytest.raises(UnknownProject):
            await orchestrator.create_task(_large(project="gamma"))

    async def test_explicit_project(self, orchestrator):
        result = await orchestrator.create_task(_large(project="beta"))
        assert result.task.project == "proj-beta"

    async def test_missing_effort_reason_advisory(self, orchestrator):
        result = await orchestrator.create_task(_large(effort_reason=None))
        assert "Effort 8 task should include effort_reason to document complexity" in (
            result.advisories
        )

    async def test_low_effort_advisory(self, orchestrator):
        result = await orchestrator.create_task(CreateTaskInput(title="Typo", effort=1))
        assert result.task.labels == ["effort:1"]
        assert any("session-local" in a for a in result.advisories)

    async def test_high_uncertainty_count_advisory(self, orchestrator):
        result = await orchestrator.create_task(_large(uncertainties=["a", "b", "c", "d"]))
        assert any("research spike" in a for a in result.advisories)

    async def test_dependencies_recorded(self, orchestrator):
        dependency = TaskDependency(task_id="EXT-1", type=DependencyType.BLOCKED_BY)
        result = await orchestrator.create_task(
            CreateTaskInput(title="Small", effort=2, dependencies=[dependency])
        )
        assert result.task.dependencies == [dependency]


class TestBatchCreate:
    """batch_create_tasks"""

    async def test_backward_dependency_succeeds(self, orchestrator):
        result = await orchestrator.batch_create_tasks(
            BatchCreateTasksInput(
                tasks=[
                    {"title": "A", "effort": 2},
                    {"title": "B", "effort": 3, "depends_on_batch_index": [0]},
                ]
            )
        )
        first, second = result.tasks
        assert second.dependencies == [
            TaskDependency(task_id=first.task_id, type=DependencyType.BLOCKED_BY)
        ]
        assert first.dependencies == []

    async def test_empty_batch_returns_empty_result(self, orchestrator, store):
        """空批次不访问存储，直接返回空结果"""
        result = await orchestrator.batch_create_tasks(BatchCreateTasksInput(tasks=[]))
        assert (result.tasks, result.advisories) == ([], [])
        assert (await store.list_tasks()).tasks == []

    async def test_forward_dependency_rejected(self, orchestrator, store):
        """依赖后续任务时整批失败，不创建任何任务"""
        with pytest.raises(ForwardDependency):
            await orchestrator.batch_create_tasks(
                BatchCreateTasksInput(
                    tasks=[
                        {"title": "A", "effort": 2, "depends_on_batch_index": [1]},
                        {"title": "B", "effort": 3},
                    ]
                )
            )
        assert (await store.list_tasks()).tasks == []

    async def test_self_dependency(self, orchestrator):
        with pytest.raises(SelfDependency):
            await orchestrator.batch_create_tasks(
                BatchCreateTasksInput(
                    tasks=[{"title": "A", "effort": 2, "depends_on_batch_index": [0]}]
                )
            )

    async def test_index_out_of_range(self, orchestrator):
        with pytest.raises(BatchIndexOutOfRange):
            await orchestrator.batch_create_tasks(
                BatchCreateTasksInput(
                    tasks=[
                        {"title": "A", "effort": 2},
                        {"title": "B", "effort": 2, "depends_on_batch_index": [5]},
                    ]
                )
            )

    async def test_invalid_item_rejects_whole_batch(self, orchestrator, store):
        with pytest.raises(InvalidEffort, match=r'Task 1 \("B"\)'):
            await orchestrator.batch_create_tasks(
                BatchCreateTasksInput(
                    tasks=[{"title": "A", "effort": 2}, {"title": "B", "effort": 4}]
                )
            )
        assert (await store.list_tasks()).tasks == []

    async def test_batch_too_large(self, make_orchestrator):
        orchestrator = make_orchestrator(batch_max_size=2)
        with pytest.raises(BatchTooLarge):
            await orchestrator.batch_create_tasks(
                BatchCreateTasksInput(tasks=[{"title": t, "effort": 1} for t in "ABC"])
            )

    async def test_decomposition_summary(self, orchestrator):
        result = await orchestrator.batch_create_tasks(
            BatchCreateTasksInput(
                tasks=[
                    {"title": "A", "effort": 8, "effort_reason": "r", "uncertainties": ["x"]},
                    {"title": "B", "effort": 2},
                ]
            )
        )
        assert "1 task(s) require decomposition before execution (use decompose_task)" in (
            result.advisories
        )


class TestDecompose:
    """decompose_task"""

    async def test_creates_subtasks_and_clears_label(self, orchestrator, store):
        parent_id = await _decompose_ready_parent(orchestrator, store)
        result = await orchestrator.decompose_task(
            DecomposeTaskInput(
                task_id=parent_id,
                decomposition_reason="Split by layer",
                subtasks=[
                    SubtaskInput(title="Parse", effort=3, sequence_order=1),
                    SubtaskInput(title="Store", effort=2, sequence_order=2),
                ],
            )
        )
        assert [t.title for t in result.subtasks] == ["Parse", "Store"]
        assert all(t.parent_task_id == parent_id for t in result.subtasks)
        assert all(t.project == "proj-alpha" for t in result.subtasks)

        parent = await store.get_task(parent_id)
        assert parent.labels == ["backend", "effort:8"]
        assert store.raw_issue(parent_id).comments == ["**Decomposition Reason:** Split by layer"]

    async def test_warn_mode_proceeds_with_advisory(self, make_orchestrator, store):
        orchestrator = make_orchestrator(UncertaintyMode.WARN)
        parent_id = await _decompose_ready_parent(orchestrator, store)
        result = await orchestrator.decompose_task(
            DecomposeTaskInput(task_id=parent_id, subtasks=[SubtaskInput(title="P", effort=2)])
        )
        assert any("warn mode" in a for a in result.advisories)
        assert len(result.subtasks) == 1

    async def test_block_mode_raises(self, make_orchestrator, store):
        orchestrator = make_orchestrator(UncertaintyMode.BLOCK)
        parent_id = await _decompose_ready_parent(orchestrator, store)
        with pytest.raises(UnresolvedUncertainties):
            await orchestrator.decompose_task(
                DecomposeTaskInput(task_id=parent_id, subtasks=[SubtaskInput(title="P", effort=2)])
            )
        assert (await store.get_task(parent_id)).subtasks is None

    async def test_off_mode_no_advisory(self, make_orchestrator, store):
        orchestrator = make_orchestrator(UncertaintyMode.OFF)
        parent_id = await _decompose_ready_parent(orchestrator, store)
        result = await orchestrator.decompose_task(
            DecomposeTaskInput(task_id=parent_id, subtasks=[SubtaskInput(title="P", effort=2)])
        )
        assert not any("warn mode" in a for a in result.advisories)

    async def test_small_parent_not_decomposed(self, orchestrator):
        created = await orchestrator.create_task(CreateTaskInput(title="Small", effort=3))
        with pytest.raises(DecompositionNotRequired):
            await orchestrator.decompose_task(
                DecomposeTaskInput(
                    task_id=created.task.task_id, subtasks=[SubtaskInput(title="P", effort=1)]
                )
            )

    async def test_invalid_subtask_rejected_before_writes(self, orchestrator, store):
        parent_id = await _decompose_ready_parent(orchestrator, store)
        with pytest.raises(MissingUncertainties):
            await orchestrator.decompose_task(
                DecomposeTaskInput(
                    task_id=parent_id,
                    decomposition_reason="why",
                    subtasks=[
                        SubtaskInput(title="Ok", effort=2),
                        SubtaskInput(title="Too big", effort=5),
                    ],
                )
            )
        assert (await store.get_task(parent_id)).subtasks is None
        assert store.raw_issue(parent_id).comments == []

    async def test_missing_parent(self, orchestrator):
        with pytest.raises(TaskNotFound):
            await orchestrator.decompose_task(
                DecomposeTaskInput(task_id="nope", subtasks=[SubtaskInput(title="P", effort=1)])
            )


class TestUpdateTask:
    """update_task 与子树完成提示"""

    async def _tree(self, orchestrator, store):
        parent_id = await _decompose_ready_parent(orchestrator, store)
        result = await orchestrator.decompose_task(
            DecomposeTaskInput(
                task_id=parent_id,
                subtasks=[SubtaskInput(title="A", effort=1), SubtaskInput(title="B", effort=1)],
            )
        )
        return parent_id, [t.task_id for t in result.subtasks]

    async def test_tree_completion_advisory(self, orchestrator, store):
        parent_id, (a, b) = await self._tree(orchestrator, store)
        done = TaskUpdateSet(status=TaskStatus.DONE)

        partial = await orchestrator.update_task(
            UpdateTaskInput(tasks=[TaskUpdateOperation(task_id=a, set=done)])
        )
        assert partial.advisories == []

        complete = await orchestrator.update_task(
            UpdateTaskInput(
                tasks=[
                    TaskUpdateOperation(task_id=b, set=done),
                    TaskUpdateOperation(task_id=parent_id, set=done),
                ]
            )
        )
        assert len(complete.advisories) == 1
        assert complete.advisories[0].startswith("Entire task tree completed: TASK-1 - Importer")

    async def test_uncertainty_add_is_idempotent(self, orchestrator):
        created = await orchestrator.create_task(CreateTaskInput(title="Small", effort=2))
        task_id = created.task.task_id
        await orchestrator.update_task(
            UpdateTaskInput(
                tasks=[
                    TaskUpdateOperation(task_id=task_id, add=TaskUpdateAdd(uncertainties=["Risk"])),
                    TaskUpdateOperation(task_id=task_id, add=TaskUpdateAdd(uncertainties=["risk "])),
                ]
            )
        )
        task = await orchestrator.get_task(task_id)
        assert [u.title for u in task.uncertainties] == ["Risk"]


class TestQueryTasks:
    """query_tasks"""

    async def test_empty_operation_before_store_contact(self, config):
        store = AsyncMock()
        orchestrator = WorkflowOrchestrator(config, store)
        with pytest.raises(EmptyOperation):
            await orchestrator.query_tasks(
                QueryTasksInput(filter=TaskFilter(), limit=5, operation=TaskBulkOperation())
            )
        assert store.mock_calls == []

    async def test_bulk_update_matching_tasks(self, orchestrator):
        for title in ("api one", "api two", "ui"):
            await orchestrator.create_task(CreateTaskInput(title=title, effort=2))
        result = await orchestrator.query_tasks(
            QueryTasksInput(
                filter=TaskFilter(search="api"),
                operation=TaskBulkOperation(add=TaskUpdateAdd(labels=["api"])),
            )
        )
        assert (result.matched, result.updated) == (2, 2)
        assert all("api" in task.labels for task in result.tasks)

    async def test_no_matches(self, orchestrator):
        result = await orchestrator.query_tasks(
            QueryTasksInput(
                filter=TaskFilter(search="nothing"),
                operation=TaskBulkOperation(set=TaskUpdateSet(status=TaskStatus.DONE)),
            )
        )
        assert (result.matched, result.updated, result.tasks) == (0, 0, [])


class TestDiscoveryQueries:
    """list_tasks / get_ready_tasks / get_task_details"""

    async def test_ready_tasks(self, orchestrator, store):
        await orchestrator.create_task(CreateTaskInput(title="Ready", effort=2))
        await orchestrator.create_task(_large("Needs split"))
        started = await orchestrator.create_task(CreateTaskInput(title="Started", effort=1))
        await orchestrator.update_task(
            UpdateTaskInput(
                tasks=[
                    TaskUpdateOperation(
                        task_id=started.task.task_id,
                        set=TaskUpdateSet(status=TaskStatus.IN_PROGRESS),
                    )
                ]
            )
        )
        ready = await orchestrator.get_ready_tasks()
        assert [task.title for task in ready] == ["Ready"]

    async def test_list_tasks_by_project(self, orchestrator):
        await orchestrator.create_task(CreateTaskInput(title="A", effort=1))
        await orchestrator.create_task(CreateTaskInput(title="B", effort=1, project="beta"))
        page = await orchestrator.list_tasks(ListTasksInput(filter=TaskFilter(project="beta")))
        assert [task.title for task in page.tasks] == ["B"]

    async def test_task_details_tree(self, orchestrator, store):
        parent_id = await _decompose_ready_parent(orchestrator, store)
        await orchestrator.decompose_task(
            DecomposeTaskInput(task_id=parent_id, subtasks=[SubtaskInput(title="A", effort=1)])
        )
        details = await orchestrator.get_task_details(parent_id, include_tree=True)
        assert [task.task_id for task in details.tasks] == [parent_id]
        assert [task.title for task in details.tree[parent_id]] == ["A"]

    async def test_task_details_skip_missing(self, orchestrator):
        details = await orchestrator.get_task_details(["nope"])
        assert details.tasks == []
        assert details.tree is None


class TestKnowledge:
    """resolve_uncertainty / extract_lesson / search_lessons"""

    async def test_resolve_and_extract_decision(self, orchestrator, knowledge):
        created = await orchestrator.create_task(_large())
        reference = await orchestrator.resolve_uncertainty(
            ResolveUncertaintyInput(
                task_id=created.task.task_id,
                uncertainty_title="Data format",
                resolution="JSON lines",
                extract_to_knowledge=True,
            )
        )
        task = await orchestrator.get_task(created.task.task_id)
        assert task.uncertainties[0].resolution == "JSON lines"
        assert task.uncertainties[0].resolved_at == NOW
        [entry] = knowledge.entries
        assert entry.kind == "decision"
        assert entry.project == "alpha"
        assert reference == entry.path

    async def test_resolve_without_extract(self, orchestrator, knowledge):
        created = await orchestrator.create_task(_large())
        reference = await orchestrator.resolve_uncertainty(
            ResolveUncertaintyInput(
                task_id=created.task.task_id,
                uncertainty_title="Data format",
                resolution="CSV",
            )
        )
        assert reference is None
        assert knowledge.entries == []

    async def test_resolve_unknown_title(self, orchestrator):
        created = await orchestrator.create_task(_large())
        with pytest.raises(UncertaintyNotFound):
            await orchestrator.resolve_uncertainty(
                ResolveUncertaintyInput(
                    task_id=created.task.task_id, uncertainty_title="Other", resolution="x"
                )
            )

    async def test_extract_and_search_lesson(self, orchestrator):
        created = await orchestrator.create_task(_large())
        reference = await orchestrator.extract_lesson(
            ExtractLessonInput(
                task_id=created.task.task_id,
                lesson=LessonLearned(content="Stream large files", category=LessonCategory.SOLUTION),
                scope=KnowledgeScope.GLOBAL,
            )
        )
        assert reference.startswith("global/lessons/")
        task = await orchestrator.get_task(created.task.task_id)
        assert task.lessons_learned[0].content == "Stream large files"

        results = await orchestrator.search_lessons("stream")
        assert [r.content for r in results] == ["Stream large files"]
        assert results[0].metadata["effort"] == 8

    async def test_knowledge_store_required(self, store):
        orchestrator = WorkflowOrchestrator(WorkflowConfig(), store)
        with pytest.raises(ConfigurationError):
            await orchestrator.search_lessons("anything")

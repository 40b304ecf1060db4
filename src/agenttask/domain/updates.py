"""TaskUpdateApplier -- 声明式批量更新

按数组顺序逐条处理 {task_id, set, add, remove, resolve}：
任一条失败立即中止剩余项，已完成的前序项不回滚，
调用方应把失败的批次视为部分已应用。

一条记录内的子操作顺序固定：set -> add -> remove -> resolve，
完成后重新读取任务，返回合并后的规范视图。
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ..exceptions import TaskNotFound, UncertaintyNotFound
from ..models.inputs import TaskUpdateOperation, TaskUpdateSet
from ..models.patches import CorePatch, EffortPatch
from ..models.task import Task
from ..store.protocols import TaskStore
from .effort import assert_valid_effort, with_effort_labels
from .uncertainty import new_uncertainties

log = structlog.get_logger()

SetIntent = CorePatch | EffortPatch


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


def plan_set_intents(task_id: str, update: TaskUpdateSet) -> list[SetIntent]:
    """把 set 拆为写入意图列表

    core patch 与 effort patch 走 tracker 的不同通道，
    以显式意图表示，便于整体重试或合并提交。
    """
    intents: list[SetIntent] = []

    core = CorePatch(
        task_id=task_id,
        status=update.status,
        description=update.description,
        assignee=update.assignee,
        due_date=update.due_date,
    )
    if not core.is_empty():
        intents.append(core)

    effort = EffortPatch(
        task_id=task_id,
        effort=update.effort,
        effort_reason=update.effort_reason,
        complexity_bias=update.complexity_bias,
    )
    if not effort.is_empty():
        intents.append(effort)

    return intents


def union_labels(current: list[str], added: list[str]) -> list[str]:
    """已有标签在前，追加尚未存在的新标签，保持顺序"""
    merged = list(current)
    for label in added:
        if label not in merged:
            merged.append(label)
    return merged


def remove_labels(current: list[str], removed: list[str]) -> list[str]:
    """按字符串精确匹配移除标签"""
    return [label for label in current if label not in removed]


class TaskUpdateApplier:
    """批量更新执行器"""

    def __init__(self, store: TaskStore, clock: Callable[[], str] | None = None) -> None:
        """
        Args:
            store: 外部任务存储
            clock: 返回当前时间 ISO 文本，用于 resolved_at
        """
        self._store = store
        self._clock = clock or _utc_now

    async def apply(self, operations: list[TaskUpdateOperation]) -> list[Task]:
        """依次应用更新，返回每条记录更新后的任务

        Raises:
            InvalidEffort: 任一 set.effort 非法（在任何写入之前检查）
            TaskNotFound: 任务不存在
            UncertaintyNotFound: resolve 的标题没有精确匹配
        """
        for operation in operations:
            if operation.set and operation.set.effort is not None:
                assert_valid_effort(operation.set.effort, context=f"Task {operation.task_id}")

        updated: list[Task] = []
        for operation in operations:
            updated.append(await self.apply_one(operation))
        return updated

    async def apply_one(self, operation: TaskUpdateOperation) -> Task:
        task_id = operation.task_id
        task = await self._store.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)

        channels: list[str] = []

        if operation.set:
            for intent in plan_set_intents(task_id, operation.set):
                task = await self._execute(intent, task)
                channels.append("core" if isinstance(intent, CorePatch) else "effort")

        known_titles = {uncertainty.title for uncertainty in task.uncertainties}

        if operation.add:
            for lesson in operation.add.lessons_learned:
                await self._store.append_lesson(task_id, lesson)

            fresh = new_uncertainties(task.uncertainties, operation.add.uncertainties)
            if fresh:
                await self._store.append_uncertainties(task_id, fresh)
                known_titles.update(uncertainty.title for uncertainty in fresh)

            if operation.add.labels:
                task = await self._store.set_labels(
                    task_id, union_labels(task.labels, operation.add.labels)
                )
            channels.append("add")

        if operation.remove and operation.remove.labels:
            task = await self._store.set_labels(
                task_id, remove_labels(task.labels, operation.remove.labels)
            )
            channels.append("remove")

        if operation.resolve:
            for item in operation.resolve.uncertainties:
                if item.title not in known_titles:
                    raise UncertaintyNotFound(task_id, item.title)
                await self._store.resolve_uncertainty(
                    task_id,
                    item.title,
                    item.resolution,
                    resolved_at=self._clock(),
                )
            channels.append("resolve")

        # 不同子操作经由不同通道写入，重新读取得到合并视图
        refreshed = await self._store.get_task(task_id)
        if refreshed is None:
            raise TaskNotFound(task_id)

        log.info("task_updated", task_id=task_id, channels=channels)
        return refreshed

    async def _execute(self, intent: SetIntent, task: Task) -> Task:
        if isinstance(intent, CorePatch):
            return await self._store.update_task_core(intent)

        await self._store.update_task_effort(intent)
        if intent.effort is None:
            return task
        # effort 变化时重写合成标签，用户标签保留
        return await self._store.set_labels(
            intent.task_id, with_effort_labels(task.labels, intent.effort)
        )

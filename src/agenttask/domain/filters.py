"""TaskFilter -- 发现查询的内存过滤

子句按顺序做 AND 收窄：
status_in -> labels_has_every -> has_unresolved_uncertainties -> ready -> search

注意 has_unresolved_uncertainties 与 ready 只看 resolution 字段，
与拆解检查（resolution 或 resolved_at）口径不同。
"""

from collections.abc import Iterable

from ..models.enums import TaskStatus
from ..models.inputs import TaskFilter
from ..models.task import Task
from .effort import NEEDS_DECOMPOSITION_LABEL


def _has_unresolved(task: Task) -> bool:
    return any(not uncertainty.resolution for uncertainty in task.uncertainties)


def filter_tasks(
    tasks: list[Task],
    criteria: TaskFilter | None,
    ready_statuses: Iterable[TaskStatus] | None = None,
) -> list[Task]:
    """按过滤条件收窄任务列表，criteria 为 None 时原样返回

    Args:
        tasks: 待过滤任务
        criteria: 过滤条件
        ready_statuses: ready 过滤使用的状态集合，仅在未给出 status_in 时生效
    """
    if criteria is None:
        return tasks

    filtered = tasks

    if criteria.status_in:
        desired = set(criteria.status_in)
        filtered = [task for task in filtered if task.status in desired]
    elif criteria.ready and ready_statuses is not None:
        desired = set(ready_statuses)
        filtered = [task for task in filtered if task.status in desired]

    if criteria.labels_has_every:
        required = criteria.labels_has_every
        filtered = [
            task for task in filtered if all(label in task.labels for label in required)
        ]

    if criteria.has_unresolved_uncertainties is not None:
        wanted = criteria.has_unresolved_uncertainties
        filtered = [task for task in filtered if _has_unresolved(task) == wanted]

    if criteria.ready:
        filtered = [
            task
            for task in filtered
            if not _has_unresolved(task) and NEEDS_DECOMPOSITION_LABEL not in task.labels
        ]

    if criteria.search:
        term = criteria.search.lower()
        filtered = [
            task
            for task in filtered
            if term in task.title.lower() or term in (task.description or "").lower()
        ]

    return filtered

"""TaskTreeEvaluator -- 整棵子树完成判断"""

from collections.abc import Awaitable, Callable

import structlog

from ..models.enums import TaskStatus
from ..models.task import Task

log = structlog.get_logger()

TaskLoader = Callable[[str], Awaitable[Task | None]]


async def is_entire_tree_done(
    task: Task,
    loader: TaskLoader,
    _visited: set[str] | None = None,
) -> bool:
    """任务本身及所有后代均为 done 时返回 True

    已携带嵌套子树的子任务直接递归，否则通过 loader 加载完整副本
    （loader 返回 None 时退回使用原始存根）。遇到第一个未完成节点即短路。
    外部编辑可能引入环，已访问节点不再重复展开。
    """
    if task.status != TaskStatus.DONE:
        return False

    if not task.subtasks:
        return True

    visited = _visited if _visited is not None else set()
    visited.add(task.task_id)

    for subtask in task.subtasks:
        if subtask.task_id in visited:
            log.warning("task_tree_cycle_skipped", task_id=subtask.task_id)
            continue

        if subtask.subtasks:
            enriched = subtask
        else:
            enriched = await loader(subtask.task_id) or subtask

        if not await is_entire_tree_done(enriched, loader, visited):
            return False

    return True


async def find_root_task(task: Task, loader: TaskLoader) -> Task:
    """沿 parent 链向上找到根任务，父任务缺失时停在当前节点"""
    current = task
    seen = {task.task_id}

    while current.parent_task_id:
        if current.parent_task_id in seen:
            log.warning("task_parent_cycle_detected", task_id=current.task_id)
            break
        parent = await loader(current.parent_task_id)
        if parent is None:
            break
        seen.add(parent.task_id)
        current = parent

    return current

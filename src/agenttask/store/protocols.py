"""Store Protocol 接口定义

定义外部任务存储（issue tracker）与知识库的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
每次调用都是 await 的异步操作，也是核心层唯一的挂起点。
"""

from typing import Protocol

from ..models.enums import KnowledgeScope
from ..models.patches import CorePatch, EffortPatch, NewTask
from ..models.results import KnowledgeSearchResult, TaskPage
from ..models.task import LessonLearned, Task, TaskDependency, Uncertainty


class TaskStore(Protocol):
    """任务存储接口"""

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务，不存在返回 None"""
        ...

    async def list_tasks(
        self,
        project_id: str | None = None,
        limit: int = 20,
        after: str | None = None,
    ) -> TaskPage:
        """分页查询任务，可按外部项目 ID 筛选"""
        ...

    async def create_task(self, new_task: NewTask) -> Task:
        """创建顶层任务"""
        ...

    async def create_subtask(self, parent_task_id: str, new_task: NewTask) -> Task:
        """在父任务下创建子任务"""
        ...

    async def update_task_core(self, patch: CorePatch) -> Task:
        """core patch：status/description/assignee/due_date"""
        ...

    async def update_task_effort(self, patch: EffortPatch) -> None:
        """effort patch：effort/effort_reason/complexity_bias"""
        ...

    async def set_labels(self, task_id: str, labels: list[str]) -> Task:
        """整体替换标签集合"""
        ...

    async def append_uncertainties(self, task_id: str, uncertainties: list[Uncertainty]) -> None:
        """追加不确定性（调用方已去重）"""
        ...

    async def resolve_uncertainty(
        self,
        task_id: str,
        title: str,
        resolution: str,
        resolved_at: str,
    ) -> None:
        """按精确标题解决不确定性"""
        ...

    async def append_lesson(self, task_id: str, lesson: LessonLearned) -> None:
        """追加经验（append-only）"""
        ...

    async def add_dependencies(self, task_id: str, dependencies: list[TaskDependency]) -> None:
        """记录任务依赖"""
        ...

    async def add_comment(self, task_id: str, body: str) -> None:
        """追加评论"""
        ...


class KnowledgeStore(Protocol):
    """知识库接口 -- 经验与决策沉淀"""

    async def create_lesson(
        self,
        task_id: str,
        task_title: str,
        lesson: LessonLearned,
        project: str | None = None,
        scope: KnowledgeScope = KnowledgeScope.PROJECT,
        related_concepts: list[str] | None = None,
        effort_details: dict | None = None,
    ) -> str:
        """写入经验，返回知识库中的引用"""
        ...

    async def create_decision(
        self,
        task_id: str,
        task_title: str,
        uncertainty: Uncertainty,
        project: str | None = None,
        scope: KnowledgeScope = KnowledgeScope.PROJECT,
        tags: list[str] | None = None,
    ) -> str:
        """写入决策（已解决的不确定性），返回知识库中的引用"""
        ...

    async def search_lessons(
        self,
        query: str,
        project: str | None = None,
    ) -> list[KnowledgeSearchResult]:
        """检索经验"""
        ...

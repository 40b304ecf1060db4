"""InMemoryKnowledgeStore -- 知识库内存实现

经验与决策以条目形式保存，检索为标题/内容的大小写不敏感子串匹配。
"""

from pydantic import BaseModel, Field
from ulid import ULID

from ..models.enums import KnowledgeScope
from ..models.results import KnowledgeSearchResult
from ..models.task import LessonLearned, Uncertainty


class KnowledgeEntry(BaseModel):
    """知识库条目"""

    entry_id: str
    kind: str = Field(description="lesson / decision")
    task_id: str
    title: str
    content: str
    project: str | None = None
    scope: KnowledgeScope = KnowledgeScope.PROJECT
    tags: list[str] = Field(default_factory=list)
    details: dict = Field(default_factory=dict)

    @property
    def path(self) -> str:
        base = "global" if self.scope == KnowledgeScope.GLOBAL else (self.project or "global")
        folder = "lessons" if self.kind == "lesson" else "decisions"
        return f"{base}/{folder}/{self.entry_id}"


class InMemoryKnowledgeStore:
    """KnowledgeStore 的内存实现"""

    def __init__(self) -> None:
        self.entries: list[KnowledgeEntry] = []

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
        entry = KnowledgeEntry(
            entry_id=str(ULID()),
            kind="lesson",
            task_id=task_id,
            title=f"{task_title}: {lesson.content[:60]}",
            content=lesson.content,
            project=project,
            scope=scope,
            tags=[*lesson.tags, *(related_concepts or [])],
            details={
                "category": lesson.category.value if lesson.category else None,
                **(effort_details or {}),
            },
        )
        self.entries.append(entry)
        return entry.path

    async def create_decision(
        self,
        task_id: str,
        task_title: str,
        uncertainty: Uncertainty,
        project: str | None = None,
        scope: KnowledgeScope = KnowledgeScope.PROJECT,
        tags: list[str] | None = None,
    ) -> str:
        entry = KnowledgeEntry(
            entry_id=str(ULID()),
            kind="decision",
            task_id=task_id,
            title=uncertainty.title,
            content=uncertainty.resolution or "",
            project=project,
            scope=scope,
            tags=list(tags or []),
            details={"task_title": task_title, "resolved_at": uncertainty.resolved_at},
        )
        self.entries.append(entry)
        return entry.path

    async def search_lessons(
        self,
        query: str,
        project: str | None = None,
    ) -> list[KnowledgeSearchResult]:
        term = query.lower()
        results: list[KnowledgeSearchResult] = []
        for entry in self.entries:
            if entry.kind != "lesson":
                continue
            if project is not None and entry.project not in (project, None):
                continue
            if term not in entry.title.lower() and term not in entry.content.lower():
                continue
            results.append(
                KnowledgeSearchResult(
                    id=entry.entry_id,
                    path=entry.path,
                    title=entry.title,
                    content=entry.content,
                    metadata={"task_id": entry.task_id, "tags": entry.tags, **entry.details},
                )
            )
        return results

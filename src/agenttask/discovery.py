"""ProjectDiscovery -- 按需发现 tracker 项目并缓存到本地

首次访问时从 <root>/.agent-task-manager.json 加载缓存（只加载一次），
未命中的项目名通过注入的 lister 在 tracker 中按名称（大小写不敏感）查找，
分配存储路径 <root>/projects/<slug> 后写回缓存。

缓存读写失败只记录日志，不影响调用。
"""

import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

from .exceptions import UnknownProject

log = structlog.get_logger()

CACHE_FILENAME = ".agent-task-manager.json"
CACHE_VERSION = "1.0"


class ExternalProject(BaseModel):
    """tracker 返回的项目"""

    id: str
    name: str


class DiscoveredProject(BaseModel):
    """已发现的项目"""

    external_project_id: str
    external_project_name: str
    path: str = Field(description="知识库存储目录")
    discovered_at: datetime


class ProjectCacheData(BaseModel):
    """缓存文件内容"""

    version: str = CACHE_VERSION
    last_sync: datetime | None = None
    projects: dict[str, DiscoveredProject] = Field(default_factory=dict)


ProjectLister = Callable[[], Awaitable[list[ExternalProject]]]


def sanitize_project_name(name: str) -> str:
    """小写，非字母数字连续段替换为单个 '-'，去掉首尾 '-'"""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class ProjectDiscovery:
    """项目发现与本地缓存"""

    def __init__(self, root_path: Path | str, lister: ProjectLister) -> None:
        """
        Args:
            root_path: 知识库根目录，缓存文件与项目目录都位于其下
            lister: 列出 tracker 中全部项目的异步函数
        """
        self._root = Path(root_path)
        self._lister = lister
        self._cache_file = self._root / CACHE_FILENAME
        self._cache: dict[str, DiscoveredProject] = {}
        self._cache_loaded = False

    async def get_project(self, project_name: str) -> DiscoveredProject:
        """返回项目配置，缓存未命中时从 tracker 发现

        Raises:
            UnknownProject: tracker 中没有同名项目
        """
        if not self._cache_loaded:
            self._load_cache()

        cached = self._cache.get(project_name)
        if cached is not None:
            return cached

        log.info("project_discovery_started", project=project_name)
        discovered = await self._discover(project_name)
        self._cache[project_name] = discovered
        self._save_cache()

        log.info("project_discovered", project=project_name, path=discovered.path)
        return discovered

    def has_project(self, project_name: str) -> bool:
        return project_name in self._cache

    def cached_projects(self) -> dict[str, DiscoveredProject]:
        return dict(self._cache)

    def clear_project(self, project_name: str) -> None:
        """移除缓存项，下次访问重新发现"""
        self._cache.pop(project_name, None)

    async def _discover(self, project_name: str) -> DiscoveredProject:
        projects = await self._lister()
        wanted = project_name.lower()
        match = next((p for p in projects if p.name.lower() == wanted), None)
        if match is None:
            raise UnknownProject(project_name, [p.name for p in projects])

        return DiscoveredProject(
            external_project_id=match.id,
            external_project_name=match.name,
            path=str(self._root / "projects" / sanitize_project_name(match.name)),
            discovered_at=datetime.now(UTC),
        )

    def _load_cache(self) -> None:
        self._cache_loaded = True
        if not self._cache_file.exists():
            return

        try:
            data = ProjectCacheData.model_validate_json(
                self._cache_file.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as e:
            log.warning("project_cache_load_failed", path=str(self._cache_file), error=str(e))
            return

        self._cache.update(data.projects)
        log.info("project_cache_loaded", count=len(self._cache))

    def _save_cache(self) -> None:
        data = ProjectCacheData(last_sync=datetime.now(UTC), projects=self._cache)
        try:
            self._cache_file.parent.mkdir(parents=True, exist_ok=True)
            self._cache_file.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            log.error("project_cache_save_failed", path=str(self._cache_file), error=str(e))

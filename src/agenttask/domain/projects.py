"""ProjectResolver -- 项目 key 解析

把调用方给出的逻辑项目 key 映射到配置中的项目，并处理缺省规则；
反向查询根据 tracker 项目 ID 找回项目 key。
"""

import structlog

from ..config import ProjectMapping, WorkflowConfig
from ..exceptions import UnknownProject

log = structlog.get_logger()


class ProjectResolver:
    """项目解析器

    配置在构造时固定，运行期间不变。
    """

    def __init__(
        self,
        projects: dict[str, ProjectMapping],
        default_project: str | None = None,
    ) -> None:
        self._projects = dict(projects)
        self._default_project = default_project

    @classmethod
    def from_config(cls, config: WorkflowConfig) -> "ProjectResolver":
        return cls(config.projects, config.default_project)

    @property
    def project_keys(self) -> list[str]:
        return list(self._projects)

    def resolve(self, requested: str | None = None) -> str | None:
        """解析项目 key

        行为规则:
            1. 显式给出 requested -> 必须已配置，否则抛出 UnknownProject
            2. 未给出且默认项目仍有效 -> 返回默认项目
            3. 仅配置了一个项目 -> 自动选择（info 日志）
            4. 配置了多个项目 -> 返回 None 并记录 warning，建议显式指定
            5. 未配置任何项目 -> 静默返回 None
        """
        if requested:
            if requested not in self._projects:
                raise UnknownProject(requested, self.project_keys)
            return requested

        if self._default_project and self._default_project in self._projects:
            return self._default_project

        keys = self.project_keys
        if len(keys) == 1:
            log.info("project_defaulted_to_sole_project", project=keys[0])
            return keys[0]

        if len(keys) > 1:
            log.warning(
                "project_not_specified",
                available=keys,
                hint="Provide project when creating tasks or set DEFAULT_PROJECT.",
            )

        return None

    def resolve_from_external_id(self, external_id: str | None) -> str | None:
        """根据 tracker 项目 ID 反查项目 key，无匹配返回 None"""
        if not external_id:
            return None
        for key, mapping in self._projects.items():
            if mapping.external_project_id == external_id:
                return key
        return None

    def external_id_for(self, project_key: str | None) -> str | None:
        """项目 key -> tracker 项目 ID"""
        if not project_key:
            return None
        mapping = self._projects.get(project_key)
        return mapping.external_project_id if mapping else None

    def get_mapping(self, project_key: str) -> ProjectMapping | None:
        return self._projects.get(project_key)

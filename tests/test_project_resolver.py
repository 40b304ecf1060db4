"""ProjectResolver 单元测试

验证显式项目、默认项目、单项目自动选择、多项目无默认与反向查询。
"""

import pytest
from agenttask.config import ProjectMapping, WorkflowConfig
from agenttask.domain.projects import ProjectResolver
from agenttask.exceptions import UnknownProject


def _mappings(*keys: str) -> dict[str, ProjectMapping]:
    return {key: ProjectMapping(external_project_id=f"ext-{key}") for key in keys}


class TestResolve:
    """resolve() 缺省规则"""

    def test_explicit_project(self):
        resolver = ProjectResolver(_mappings("alpha", "beta"))
        assert resolver.resolve("beta") == "beta"

    def test_unknown_project_lists_available(self):
        resolver = ProjectResolver(_mappings("alpha", "beta"))
        with pytest.raises(UnknownProject, match="Available projects: alpha, beta"):
            resolver.resolve("gamma")

    def test_unknown_project_none_configured(self):
        with pytest.raises(UnknownProject, match="none configured"):
            ProjectResolver({}).resolve("gamma")

    def test_default_project(self):
        resolver = ProjectResolver(_mappings("alpha", "beta"), default_project="beta")
        assert resolver.resolve() == "beta"

    def test_stale_default_ignored(self):
        """默认项目不在映射中时按未设置处理"""
        resolver = ProjectResolver(_mappings("alpha"), default_project="gone")
        assert resolver.resolve() == "alpha"

    def test_sole_project_selected(self):
        assert ProjectResolver(_mappings("solo")).resolve() == "solo"

    def test_multiple_projects_without_default(self):
        """多个项目且无默认时返回 None"""
        assert ProjectResolver(_mappings("alpha", "beta")).resolve() is None

    def test_no_projects(self):
        assert ProjectResolver({}).resolve() is None

    def test_from_config(self):
        config = WorkflowConfig(projects=_mappings("alpha", "beta"), default_project="alpha")
        resolver = ProjectResolver.from_config(config)
        assert resolver.project_keys == ["alpha", "beta"]
        assert resolver.resolve() == "alpha"


class TestExternalIds:
    """项目 key 与 tracker 项目 ID 互查"""

    def test_resolve_from_external_id(self):
        resolver = ProjectResolver(_mappings("alpha", "beta"))
        assert resolver.resolve_from_external_id("ext-beta") == "beta"

    def test_resolve_from_unknown_external_id(self):
        resolver = ProjectResolver(_mappings("alpha"))
        assert resolver.resolve_from_external_id("ext-zzz") is None
        assert resolver.resolve_from_external_id(None) is None

    def test_external_id_for(self):
        resolver = ProjectResolver(_mappings("alpha"))
        assert resolver.external_id_for("alpha") == "ext-alpha"
        assert resolver.external_id_for(None) is None
        assert resolver.external_id_for("missing") is None

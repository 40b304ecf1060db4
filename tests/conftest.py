"""agenttask 测试 fixtures -- 内存存储 + 固定时钟的编排器"""

import pytest
from agenttask.config import ProjectMapping, WorkflowConfig
from agenttask.models.enums import UncertaintyMode
from agenttask.orchestrator import WorkflowOrchestrator
from agenttask.store.knowledge_store import InMemoryKnowledgeStore
from agenttask.store.memory_store import InMemoryTaskStore

FIXED_NOW = "2024-05-01T12:00:00+00:00"


def fixed_clock() -> str:
    return FIXED_NOW


@pytest.fixture
def store() -> InMemoryTaskStore:
    """只有自由文本描述字段的 tracker"""
    return InMemoryTaskStore()


@pytest.fixture
def knowledge() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()


@pytest.fixture
def projects() -> dict[str, ProjectMapping]:
    return {
        "alpha": ProjectMapping(external_project_id="proj-alpha"),
        "beta": ProjectMapping(external_project_id="proj-beta"),
    }


@pytest.fixture
def config(projects: dict[str, ProjectMapping]) -> WorkflowConfig:
    return WorkflowConfig(projects=projects, default_project="alpha")


@pytest.fixture
def orchestrator(
    config: WorkflowConfig,
    store: InMemoryTaskStore,
    knowledge: InMemoryKnowledgeStore,
) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(config, store, knowledge, clock=fixed_clock)


@pytest.fixture
def make_orchestrator(store: InMemoryTaskStore, knowledge: InMemoryKnowledgeStore, projects):
    """按不确定性模式构造编排器"""

    def _make(mode: UncertaintyMode = UncertaintyMode.WARN, **overrides) -> WorkflowOrchestrator:
        config = WorkflowConfig(
            projects=projects,
            default_project="alpha",
            uncertainty_mode=mode,
            **overrides,
        )
        return WorkflowOrchestrator(config, store, knowledge, clock=fixed_clock)

    return _make

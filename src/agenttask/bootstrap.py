"""宿主入口 -- 日志初始化 + 环境配置加载 + 编排器装配

工具服务器等宿主进程在启动时调用 create_orchestrator()，
注入具体的 tracker / 知识库实现。
"""

import structlog

from .config import WorkflowConfig, load_config
from .logging_config import setup_logging
from .orchestrator import WorkflowOrchestrator
from .store.protocols import KnowledgeStore, TaskStore

log = structlog.get_logger()


def create_orchestrator(
    task_store: TaskStore,
    knowledge_store: KnowledgeStore | None = None,
    config: WorkflowConfig | None = None,
    configure_logging: bool = True,
) -> WorkflowOrchestrator:
    """装配编排器

    Args:
        task_store: 外部任务存储
        knowledge_store: 知识库，可选
        config: 显式配置，None 时从环境变量加载
        configure_logging: 是否调用 setup_logging()；宿主已配置日志时传 False

    Raises:
        ConfigurationError: 环境变量中的 PROJECT_MAPPINGS 非法
    """
    if configure_logging:
        setup_logging()

    config = config or load_config()
    orchestrator = WorkflowOrchestrator(config, task_store, knowledge_store)
    log.info(
        "orchestrator_initialized",
        projects=list(config.projects),
        default_project=config.default_project,
        uncertainty_mode=config.uncertainty_mode.value,
        knowledge_store=knowledge_store is not None,
    )
    return orchestrator

"""WorkflowConfig -- 工作流配置加载

从环境变量加载项目映射、默认项目与不确定性策略模式。

环境变量:
    PROJECT_MAPPINGS: 项目 key -> 映射配置的 JSON 对象
    DEFAULT_PROJECT: 默认项目 key
    UNCERTAINTY_RESOLUTION_MODE: off / warn / block（默认 warn）
    AGENT_TASK_BATCH_MAX_SIZE: 批量创建上限（默认 50）
"""

import json
import os

import structlog
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .models.enums import UncertaintyMode

log = structlog.get_logger()

DEFAULT_BATCH_MAX_SIZE = 50
DEFAULT_QUERY_LIMIT = 20


class ProjectMapping(BaseModel):
    """单个项目的外部映射"""

    external_project_id: str = Field(min_length=1, description="tracker 中的项目 ID")
    knowledge_path: str | None = Field(default=None, description="知识库项目目录")
    lessons_folder: str | None = Field(default=None, description="经验子目录")
    decisions_folder: str | None = Field(default=None, description="决策子目录")


class WorkflowConfig(BaseModel):
    """工作流配置"""

    projects: dict[str, ProjectMapping] = Field(
        default_factory=dict,
        description="项目 key -> 外部映射",
    )
    default_project: str | None = Field(default=None, description="默认项目 key")
    uncertainty_mode: UncertaintyMode = Field(
        default=UncertaintyMode.WARN,
        description="拆解前不确定性检查模式",
    )
    batch_max_size: int = Field(
        default=DEFAULT_BATCH_MAX_SIZE,
        ge=1,
        description="单次批量创建的任务上限",
    )
    query_default_limit: int = Field(
        default=DEFAULT_QUERY_LIMIT,
        ge=1,
        le=100,
        description="query_tasks 默认命中上限",
    )


def parse_project_mappings(raw: str) -> dict[str, ProjectMapping]:
    """解析 PROJECT_MAPPINGS JSON

    Raises:
        ConfigurationError: 不是合法 JSON 对象或映射字段缺失
    """
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ConfigurationError("PROJECT_MAPPINGS must be valid JSON") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("PROJECT_MAPPINGS must be a JSON object")

    try:
        return {key: ProjectMapping.model_validate(value) for key, value in data.items()}
    except ValidationError as e:
        raise ConfigurationError(f"PROJECT_MAPPINGS has an invalid entry: {e}") from e


def load_config() -> WorkflowConfig:
    """从环境变量加载工作流配置

    规则:
        - DEFAULT_PROJECT 不在映射中时记录 warning 并忽略
        - 未设置默认项目且仅配置了一个项目时，自动作为默认项目
        - 未知的 UNCERTAINTY_RESOLUTION_MODE 回退到 warn

    Returns:
        WorkflowConfig 实例
    """
    kwargs: dict = {}

    projects = parse_project_mappings(os.environ.get("PROJECT_MAPPINGS", "{}"))
    kwargs["projects"] = projects

    default_project = (os.environ.get("DEFAULT_PROJECT") or "").strip() or None
    if default_project and default_project not in projects:
        log.warning(
            "default_project_not_configured",
            default_project=default_project,
            available=list(projects),
        )
        default_project = None
    if default_project is None and len(projects) == 1:
        default_project = next(iter(projects))
    kwargs["default_project"] = default_project

    if val := os.environ.get("UNCERTAINTY_RESOLUTION_MODE"):
        try:
            kwargs["uncertainty_mode"] = UncertaintyMode(val.strip().lower())
        except ValueError:
            log.warning(
                "invalid_uncertainty_mode",
                env_var="UNCERTAINTY_RESOLUTION_MODE",
                value=val,
                fallback=UncertaintyMode.WARN.value,
            )

    if val := os.environ.get("AGENT_TASK_BATCH_MAX_SIZE"):
        try:
            size = int(val)
            if size < 1:
                raise ValueError(val)
            kwargs["batch_max_size"] = size
        except ValueError:
            log.warning(
                "invalid_batch_max_size",
                env_var="AGENT_TASK_BATCH_MAX_SIZE",
                value=val,
                fallback=DEFAULT_BATCH_MAX_SIZE,
            )
            # 使用默认值，不阻塞启动

    return WorkflowConfig(**kwargs)

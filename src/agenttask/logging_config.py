"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出（供宿主进程采集）

宿主进程启动时经 bootstrap.create_orchestrator() 调用 setup_logging()；
嵌入到已自行配置日志的宿主时可跳过。
"""

import logging
import os
import sys

import structlog

LOG_FORMAT_ENV = "AGENT_TASK_LOG_FORMAT"
LOG_LEVEL_ENV = "AGENT_TASK_LOG_LEVEL"


def _build_renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 配置

    Args:
        log_format: "json" 或 "dev"，None 时读取 AGENT_TASK_LOG_FORMAT（默认 dev）
        log_level: 日志级别名，None 时读取 AGENT_TASK_LOG_LEVEL（默认 INFO），
            无法识别的级别回退 INFO

    日志写到 stderr：stdout 留给工具协议传输层。
    """
    log_format = (log_format or os.environ.get(LOG_FORMAT_ENV, "dev")).lower()
    level_name = (log_level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    level = logging.getLevelNamesMapping().get(level_name, logging.INFO)

    # 编排器通过 contextvars 绑定 operation 等请求字段
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_build_renderer(log_format),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def bind_operation(operation: str, **context: object) -> None:
    """为当前请求绑定日志上下文（operation 名称及附加字段）

    每个编排操作入口调用一次，覆盖上一个请求残留的上下文。
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(operation=operation, **context)

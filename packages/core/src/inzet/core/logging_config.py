"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出（生产环境 / 后台 worker）
"""

import logging
import os

import structlog


def setup_logging() -> None:
    """初始化 structlog 配置

    根据 INZET_LOG_FORMAT 环境变量选择渲染模式：
    - "json": 结构化 JSON 输出
    - "dev" (默认): pretty print 可读输出
    """
    log_format = os.environ.get("INZET_LOG_FORMAT", "dev")
    log_level = os.environ.get("INZET_LOG_LEVEL", "INFO")

    # 基础处理器链
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # 配置标准库 logging（aiosqlite 等第三方库的日志也走同一渲染器）
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def actor_context(actor_alias: str, operation: str):
    """为一次治理操作绑定日志上下文（actor + operation）

    用法::

        with actor_context("Edgar", "move_task"):
            ...

    块内所有日志自动携带 actor_alias / operation 字段，
    调用方可据此把决策日志接入审计。
    """
    return structlog.contextvars.bound_contextvars(
        actor_alias=actor_alias,
        operation=operation,
    )

"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、root 任务标题、digest 批量上限、模板默认点数等可配置常量。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()

def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("INZET_DATA_DIR", "data"))

def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "INZET_DB_PATH",
        str(_get_base_dir() / "sqlite" / "inzet.db"),
    )

def get_root_task_title() -> str:
    """获取 root 任务标题（root 任务的 own coordinator 即 root-owner）"""
    return os.environ.get("INZET_ROOT_TASK_TITLE", "Besturen vereniging")

def _int_from_env(name: str, default: int) -> int:
    """读取整数环境变量，非法值记录警告并回退默认值"""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(
            "invalid_int_config",
            env_var=name,
            value=raw,
            fallback=default,
        )
        return default

# 单次 digest 最多合并的事件数
DIGEST_BATCH_LIMIT: int = _int_from_env("INZET_DIGEST_BATCH_LIMIT", 200)

# 后台 digest flush 间隔（秒）
DIGEST_TICK_S: int = _int_from_env("INZET_DIGEST_TICK_S", 300)

# 应用模板时为模板根任务申请的点数
TEMPLATE_ROOT_POINTS: int = _int_from_env("INZET_TEMPLATE_ROOT_POINTS", 100)

# 模板子项未设置 default_points 时使用的点数
TEMPLATE_CHILD_DEFAULT_POINTS: int = 10


"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
# parent_id 不加外键：历史数据可能存在悬空 parent，由 TreeIndex 容错处理
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id           TEXT PRIMARY KEY,
    parent_id         TEXT,
    title             TEXT NOT NULL DEFAULT '',
    description       TEXT NOT NULL DEFAULT '',
    team_name         TEXT,
    coordination_type TEXT,
    points            INTEGER NOT NULL DEFAULT 0,
    status            TEXT NOT NULL DEFAULT 'AVAILABLE',
    template_id       TEXT,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent_id ON tasks(parent_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
]

# own coordinators：一行一个 (task, alias)
_TASK_COORDINATORS_DDL = """
CREATE TABLE IF NOT EXISTS task_coordinators (
    task_id     TEXT NOT NULL,
    user_alias  TEXT NOT NULL,

    PRIMARY KEY (task_id, user_alias),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_TASK_COORDINATORS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_task_coordinators_alias ON task_coordinators(user_alias);",
]

_PROPOSALS_DDL = """
CREATE TABLE IF NOT EXISTS proposals (
    proposal_id     TEXT PRIMARY KEY,
    task_id         TEXT NOT NULL,
    proposer_alias  TEXT NOT NULL,
    proposed_alias  TEXT,
    status          TEXT NOT NULL DEFAULT 'OPEN',
    created_at      TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_PROPOSALS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_proposals_task_id ON proposals(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_proposals_status ON proposals(status);",
]

_TASK_TEMPLATES_DDL = """
CREATE TABLE IF NOT EXISTS task_templates (
    template_id         TEXT PRIMARY KEY,
    title               TEXT NOT NULL,
    description         TEXT NOT NULL DEFAULT '',
    default_points      INTEGER,
    parent_template_id  TEXT,

    FOREIGN KEY (parent_template_id) REFERENCES task_templates(template_id) ON DELETE CASCADE
);
"""

_MEMBERS_DDL = """
CREATE TABLE IF NOT EXISTS members (
    alias      TEXT PRIMARY KEY,
    email      TEXT,
    is_active  INTEGER NOT NULL DEFAULT 1
);
"""

_TASK_SUBSCRIPTIONS_DDL = """
CREATE TABLE IF NOT EXISTS task_subscriptions (
    task_id     TEXT NOT NULL,
    user_alias  TEXT NOT NULL,
    created_at  TEXT NOT NULL,

    PRIMARY KEY (task_id, user_alias),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

# 每个 (user, category) 一行，digest 时间戳按行原子更新
_NOTIFICATION_PREFERENCES_DDL = """
CREATE TABLE IF NOT EXISTS notification_preferences (
    user_alias           TEXT NOT NULL,
    category             TEXT NOT NULL,
    delivery             TEXT NOT NULL DEFAULT 'OFF',
    last_digest_sent_at  TEXT,

    PRIMARY KEY (user_alias, category)
);
"""

_NOTIFICATION_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS notification_events (
    event_id      TEXT PRIMARY KEY,
    user_alias    TEXT NOT NULL,
    category      TEXT NOT NULL,
    subject       TEXT NOT NULL,
    body          TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    delivered_at  TEXT
);
"""

_NOTIFICATION_EVENTS_INDEXES = [
    # digest 查询：某用户某类别的未投递事件，按创建时间排序
    (
        "CREATE INDEX IF NOT EXISTS idx_notification_events_pending "
        "ON notification_events(user_alias, category, delivered_at, created_at);"
    ),
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    for ddl in (
        _TASKS_DDL,
        _TASK_COORDINATORS_DDL,
        _PROPOSALS_DDL,
        _TASK_TEMPLATES_DDL,
        _MEMBERS_DDL,
        _TASK_SUBSCRIPTIONS_DDL,
        _NOTIFICATION_PREFERENCES_DDL,
        _NOTIFICATION_EVENTS_DDL,
    ):
        await conn.execute(ddl)

    # 创建索引
    for idx_sql in (
        _TASKS_INDEXES
        + _TASK_COORDINATORS_INDEXES
        + _PROPOSALS_INDEXES
        + _NOTIFICATION_EVENTS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    内存数据库不支持 WAL，返回 False。
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"

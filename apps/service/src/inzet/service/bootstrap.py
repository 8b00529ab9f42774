"""服务装配与生命周期

启动：打开数据库 -> 加载邮件配置 -> 组装 DigestScheduler / Notifier / TaskService
关闭：停止 digest worker -> 关闭数据库连接
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from inzet.core.config import get_db_path
from inzet.core.governance import EditCoordinatorsHook, no_extra_edit_rights
from inzet.core.store import StoreGroup, create_store_group
from inzet.notify import (
    DigestScheduler,
    Mailer,
    Notifier,
    create_mailer,
    load_mail_config,
)

from .services.digest_worker import DigestWorker
from .services.task_service import TaskService

log = structlog.get_logger()


class ServiceContainer:
    """一次运行中共享的服务实例"""

    def __init__(
        self,
        store_group: StoreGroup,
        scheduler: DigestScheduler,
        notifier: Notifier,
        task_service: TaskService,
        digest_worker: DigestWorker,
    ) -> None:
        self.store_group = store_group
        self.scheduler = scheduler
        self.notifier = notifier
        self.task_service = task_service
        self.digest_worker = digest_worker


@asynccontextmanager
async def lifespan(
    db_path: str | None = None,
    mailer: Mailer | None = None,
    edit_coordinators_hook: EditCoordinatorsHook = no_extra_edit_rights,
    start_digest_worker: bool = False,
) -> AsyncGenerator[ServiceContainer, None]:
    """打开服务所需的全部资源，退出时清理

    Args:
        db_path: 数据库路径，默认取 INZET_DB_PATH
        mailer: 发送器，默认按 INZET_MAIL_MODE 创建
        edit_coordinators_hook: EDIT_COORDINATORS 的扩展规则
        start_digest_worker: 是否启动后台 digest worker
    """
    db_path = db_path or get_db_path()
    store_group = await create_store_group(db_path)

    if mailer is None:
        mail_config = load_mail_config()
        mailer = create_mailer(mail_config)
        log.info("mailer_initialized", mode=mail_config.mail_mode)

    scheduler = DigestScheduler(
        store_group.conn,
        store_group.notification_store,
        store_group.member_store,
        mailer,
    )
    notifier = Notifier(scheduler, store_group.member_store)
    container = ServiceContainer(
        store_group=store_group,
        scheduler=scheduler,
        notifier=notifier,
        task_service=TaskService(
            store_group,
            notifier=notifier,
            edit_coordinators_hook=edit_coordinators_hook,
        ),
        digest_worker=DigestWorker(scheduler),
    )
    log.info("service_started", db_path=db_path)

    if start_digest_worker:
        container.digest_worker.start()

    try:
        yield container
    finally:
        if container.digest_worker.running:
            await container.digest_worker.stop()
        await store_group.conn.close()
        log.info("service_stopped")

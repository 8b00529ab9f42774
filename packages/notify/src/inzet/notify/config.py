"""MailConfig -- 邮件发送配置加载

从环境变量加载配置，非法数值记录警告后回退默认值，不阻塞启动。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

_DEFAULT_FROM = "Inzet VC Zwolle <noreply@vczwolle.frii.nl>"


class MailConfig(BaseModel):
    """邮件发送配置

    环境变量:
        INZET_MAIL_MODE: 发送模式（sendmail/echo）
        MAIL_FROM: From 头
        SENDMAIL_PATH: sendmail 可执行文件路径
        MAIL_ENVELOPE_FROM: 信封发件人，默认取 From 中的地址
        MAIL_MESSAGE_ID_DOMAIN: Message-ID 域名，默认取信封发件人的域名
        INZET_MAIL_TIMEOUT_S: 单封邮件发送超时（秒，默认 30）
    """

    mail_mode: Literal["sendmail", "echo"] = Field(
        default="sendmail",
        description="发送模式：sendmail / echo",
    )
    mail_from: str = Field(default=_DEFAULT_FROM, description="From 头")
    sendmail_path: str = Field(
        default="/usr/sbin/sendmail",
        description="sendmail 可执行文件路径",
    )
    envelope_from: str | None = Field(default=None, description="信封发件人（-f 参数）")
    message_id_domain: str | None = Field(default=None, description="Message-ID 域名")
    timeout_s: int = Field(default=30, ge=1, description="发送超时（秒）")


def load_mail_config() -> MailConfig:
    """从环境变量加载邮件配置

    Returns:
        MailConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("INZET_MAIL_MODE", "").strip():
        if val in ("sendmail", "echo"):
            kwargs["mail_mode"] = val
        else:
            log.warning(
                "invalid_mail_mode_config",
                env_var="INZET_MAIL_MODE",
                value=val,
                fallback="sendmail",
            )

    if val := os.environ.get("MAIL_FROM", "").strip():
        kwargs["mail_from"] = val

    if val := os.environ.get("SENDMAIL_PATH", "").strip():
        kwargs["sendmail_path"] = val

    if val := os.environ.get("MAIL_ENVELOPE_FROM", "").strip():
        kwargs["envelope_from"] = val

    if val := os.environ.get("MAIL_MESSAGE_ID_DOMAIN", "").strip():
        kwargs["message_id_domain"] = val

    if val := os.environ.get("INZET_MAIL_TIMEOUT_S"):
        try:
            timeout_s = int(val)
            if timeout_s < 1:
                raise ValueError(val)
            kwargs["timeout_s"] = timeout_s
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="INZET_MAIL_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return MailConfig(**kwargs)

"""Mailer -- 邮件发送协作方

send(to, subject, body) 成功返回，失败抛出 MailDeliveryError。
SendmailMailer 通过本机 sendmail 投递纯文本 UTF-8 邮件；
EchoMailer 只记录不发送，用于开发与测试。
"""

import asyncio
import re
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr
from typing import Protocol

import structlog

from .config import MailConfig
from .exceptions import MailDeliveryError

log = structlog.get_logger()

_HEADER_BREAKS = re.compile(r"[\r\n]+")


def sanitize_header_value(value: str) -> str:
    """去掉头部值中的换行，防止头注入"""
    return _HEADER_BREAKS.sub(" ", value).strip()


def extract_address(value: str) -> str | None:
    """从 "Name <addr>" 或裸地址中取出地址"""
    _, address = parseaddr(value)
    return address if "@" in address else None


class Mailer(Protocol):
    """邮件发送接口"""

    async def send(self, to: str, subject: str, body: str) -> None:
        """发送一封邮件，失败抛出 MailDeliveryError"""
        ...


class SendmailMailer:
    """通过 sendmail 子进程投递"""

    def __init__(self, config: MailConfig) -> None:
        self._config = config
        self._mail_from = sanitize_header_value(config.mail_from)
        self._envelope_from = (
            config.envelope_from
            or extract_address(self._mail_from)
            or "noreply@vczwolle.frii.nl"
        )
        self._message_id_domain = (
            config.message_id_domain
            or self._envelope_from.rpartition("@")[2]
            or "vczwolle.frii.nl"
        )

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        """构建纯文本 UTF-8 邮件"""
        message = EmailMessage()
        message["From"] = self._mail_from
        message["To"] = sanitize_header_value(to)
        message["Subject"] = sanitize_header_value(subject)
        message["Date"] = formatdate(usegmt=True)
        message["Message-ID"] = make_msgid(domain=self._message_id_domain)
        message.set_content(body, charset="utf-8")
        return message

    async def send(self, to: str, subject: str, body: str) -> None:
        recipient = sanitize_header_value(to)
        if not recipient:
            raise MailDeliveryError(to, "recipient is empty")

        payload = self.build_message(recipient, subject, body).as_bytes()

        try:
            process = await asyncio.create_subprocess_exec(
                self._config.sendmail_path,
                "-i",
                "-f",
                self._envelope_from,
                "--",
                recipient,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MailDeliveryError(recipient, f"sendmail 无法启动: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(payload),
                timeout=self._config.timeout_s,
            )
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise MailDeliveryError(
                recipient,
                f"sendmail 超时（{self._config.timeout_s}s）",
            ) from e

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() or "unknown error"
            raise MailDeliveryError(
                recipient,
                f"sendmail exit code {process.returncode}: {detail}",
            )

        log.debug("mail_sent", recipient=recipient, subject=sanitize_header_value(subject))


@dataclass(frozen=True)
class SentMail:
    to: str
    subject: str
    body: str


class EchoMailer:
    """只记录、不投递的 Mailer

    fail_recipients 中的地址会抛出 MailDeliveryError，用于模拟投递失败。
    """

    def __init__(self, fail_recipients: set[str] | None = None) -> None:
        self.sent: list[SentMail] = []
        self.fail_recipients: set[str] = set(fail_recipients or ())

    async def send(self, to: str, subject: str, body: str) -> None:
        if to in self.fail_recipients:
            raise MailDeliveryError(to, "echo mailer simulated failure")
        self.sent.append(SentMail(to=to, subject=subject, body=body))
        log.info("echo_mail_sent", recipient=to, subject=subject)


def create_mailer(config: MailConfig) -> Mailer:
    """按 mail_mode 创建 Mailer"""
    if config.mail_mode == "echo":
        return EchoMailer()
    return SendmailMailer(config)

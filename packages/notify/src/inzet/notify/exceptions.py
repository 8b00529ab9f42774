"""Notify 异常体系"""


class NotifyError(Exception):
    """Notify 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可在下一轮 flush 重试
        """
        super().__init__(message)
        self.recoverable = recoverable


class MailDeliveryError(NotifyError):
    """邮件投递失败（sendmail 不可执行、非零退出、超时、收件人为空等）

    此异常不中断触发它的任务变更：立即通知记录后跳过，digest 留待下轮重试。
    """

    def __init__(self, recipient: str, reason: str) -> None:
        """
        Args:
            recipient: 收件地址
            reason: 失败原因
        """
        super().__init__(f"邮件投递失败: {recipient or '(empty)'} -- {reason}")
        self.recipient = recipient
        self.reason = reason

"""Member Domain Model -- 会员（通知收件人）"""

from pydantic import BaseModel, Field


class Member(BaseModel):
    """会员；仅 is_active 且有 email 的会员会收到邮件"""

    alias: str = Field(description="会员 alias（唯一）")
    email: str | None = Field(default=None, description="邮箱，可为空")
    is_active: bool = Field(default=True, description="是否启用")

    @property
    def is_mail_recipient(self) -> bool:
        return self.is_active and bool(self.email)

"""Proposal Domain Model -- 任务分配提案"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import ProposalStatus


class Proposal(BaseModel):
    """提案

    proposer == proposed 表示自助报名；
    proposed_alias 为 None 表示未指定目标的开放提案。
    """

    proposal_id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联的 Task ID")
    proposer_alias: str = Field(description="提案人")
    proposed_alias: str | None = Field(default=None, description="被提议人")
    status: ProposalStatus = Field(default=ProposalStatus.OPEN, description="提案状态")
    created_at: datetime = Field(description="创建时间")

    @property
    def is_self_registration(self) -> bool:
        return self.proposed_alias is not None and self.proposer_alias == self.proposed_alias

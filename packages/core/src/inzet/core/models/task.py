"""Task Domain Model

任务树节点：parent 指针 + 显式 own coordinators。
effective coordinators 与可用点数均为派生值，不落库。
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .enums import CoordinationType, TaskStatus


class Task(BaseModel):
    """Task 数据模型

    points 为该任务拥有的整数预算；
    可用点数 = points - 直接子任务 points 之和，始终从树上重算。
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    parent_id: str | None = Field(default=None, description="父任务 ID，root 任务为 None")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    team_name: str | None = Field(default=None, description="所属团队")
    own_coordinator_aliases: list[str] = Field(
        default_factory=list,
        description="显式指派的 coordinator alias（去重排序）",
    )
    coordination_type: CoordinationType | None = Field(
        default=None,
        description="协调方式标记，None 表示未设置",
    )
    points: int = Field(default=0, ge=0, description="任务预算（整数点数）")
    status: TaskStatus = Field(default=TaskStatus.AVAILABLE, description="当前状态")
    template_id: str | None = Field(default=None, description="来源模板 ID")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @field_validator("own_coordinator_aliases")
    @classmethod
    def _normalize_aliases(cls, value: list[str]) -> list[str]:
        return sorted({alias for alias in value if alias})


class TaskTemplate(BaseModel):
    """任务模板：根模板 + 一层子模板"""

    template_id: str = Field(description="唯一标识")
    title: str = Field(description="模板标题")
    description: str = Field(default="", description="模板描述")
    default_points: int | None = Field(default=None, description="子任务默认点数")
    parent_template_id: str | None = Field(default=None, description="父模板 ID")


class TaskSubscription(BaseModel):
    """任务订阅：订阅者在任意后代新建子任务时收到通知"""

    task_id: str
    user_alias: str
    created_at: datetime

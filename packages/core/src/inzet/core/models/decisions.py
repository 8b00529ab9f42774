"""治理引擎决策结果

引擎本身不写库，只返回这些决策对象，由调用方落盘。
"""

from pydantic import BaseModel, Field

from .enums import Capability


class TaskPermissions(BaseModel):
    """evaluate(actor, task) 的结果"""

    read: bool = False
    open: bool = False
    manage: bool = False
    create_subtask: bool = False
    edit_coordinators: bool = False

    def allows(self, capability: Capability) -> bool:
        return getattr(self, capability.value.lower())

    @property
    def capabilities(self) -> set[Capability]:
        return {capability for capability in Capability if self.allows(capability)}


class PointsAllocation(BaseModel):
    """从父任务可用点数中分配的结果"""

    assigned_points: int = Field(description="实际分配点数，不足时为 0")
    available_points_after: int = Field(description="分配后父任务剩余可用点数")
    zeroed: bool = Field(description="是否因不足而置零")


class PointsTransfer(BaseModel):
    """移动任务时两个父任务可用点数的变化"""

    source_available_after: int
    target_available_after: int
    transferable: bool


class SubtreeCopyPlan(BaseModel):
    """复制子树的点数计划：源 task_id -> 新任务点数"""

    points_by_source_id: dict[str, int] = Field(default_factory=dict)
    allocation: PointsAllocation
    zeroed: bool


class TemplatePlan(BaseModel):
    """应用模板的点数计划"""

    root_points: int
    child_points: list[int] = Field(default_factory=list)
    allocation: PointsAllocation
    zeroed: bool


class ReleaseResolution(BaseModel):
    """释放任务后的 own coordinator 集合；error 非空时必须整体拒绝"""

    own_coordinator_aliases: list[str] | None = None
    error: str | None = None

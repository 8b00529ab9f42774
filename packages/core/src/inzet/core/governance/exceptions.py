"""治理引擎异常体系

- 权限拒绝：PermissionDeniedError
- 结构性拒绝：StructuralRejectionError 子类，调用方必须整体拒绝，不做部分写入
- 预算不足不是异常，统一按置零处理
"""


class GovernanceError(Exception):
    """治理引擎基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方修正输入后是否可重试
        """
        super().__init__(message)
        self.recoverable = recoverable


class TaskNotFoundError(GovernanceError):
    """任务不存在"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TemplateNotFoundError(GovernanceError):
    """任务模板不存在"""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class ProposalNotFoundError(GovernanceError):
    """提案不存在（或已被处理）"""

    def __init__(self, proposal_id: str) -> None:
        super().__init__(f"Proposal not found: {proposal_id}")
        self.proposal_id = proposal_id


class PermissionDeniedError(GovernanceError):
    """actor 缺少执行操作所需的能力"""

    def __init__(self, actor_alias: str, capability: str, task_id: str | None = None) -> None:
        target = f" on task {task_id}" if task_id else ""
        super().__init__(f"{actor_alias} lacks {capability}{target}")
        self.actor_alias = actor_alias
        self.capability = capability
        self.task_id = task_id


class StructuralRejectionError(GovernanceError):
    """结构性拒绝基类"""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=True)


class ReleaseWouldOrphanError(StructuralRejectionError):
    """释放后任务将无人负责（父任务的 effective set 只有 actor 自己）"""

    def __init__(self, task_id: str | None = None) -> None:
        super().__init__(
            "Release would orphan the task: the parent task has only you as coordinator"
        )
        self.task_id = task_id


class MoveWouldCreateCycleError(StructuralRejectionError):
    """移动到自身下会形成环"""

    def __init__(self, task_id: str, target_parent_id: str) -> None:
        super().__init__(f"Moving {task_id} under {target_parent_id} would create a cycle")
        self.task_id = task_id
        self.target_parent_id = target_parent_id


class MoveIntoDescendantError(MoveWouldCreateCycleError):
    """目标父任务是被移动任务的后代"""


class MoveBudgetExceededError(StructuralRejectionError):
    """目标父任务可用点数不足以接收被移动任务"""

    def __init__(self, target_parent_id: str, available: int, required: int) -> None:
        super().__init__(
            f"Target parent {target_parent_id} has {available} points available, "
            f"{required} required"
        )
        self.target_parent_id = target_parent_id
        self.available = available
        self.required = required


class PointsBudgetExceededError(StructuralRejectionError):
    """编辑任务点数超出父任务可用点数"""

    def __init__(self, task_id: str, available: int, requested: int) -> None:
        super().__init__(
            f"Task {task_id} can hold at most {available} points, {requested} requested"
        )
        self.task_id = task_id
        self.available = available
        self.requested = requested


class SubtreeContainsDoneError(StructuralRejectionError):
    """子树中存在 DONE 任务，禁止整体删除"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Subtree of {task_id} contains a completed task")
        self.task_id = task_id


class TaskFrozenError(StructuralRejectionError):
    """任务或其祖先已完成，禁止编辑"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} is frozen by a completed task")
        self.task_id = task_id


class InvalidTransitionError(StructuralRejectionError):
    """非法状态流转"""

    def __init__(self, task_id: str, from_status: str, to_status: str) -> None:
        super().__init__(f"Cannot transition task {task_id} from {from_status} to {to_status}")
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status


class SubtaskRequiredError(StructuralRejectionError):
    """操作只适用于子任务：root 任务不可移动、复制或删除"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} is a root task")
        self.task_id = task_id


class ProposalStateError(StructuralRejectionError):
    """提案当前状态不允许该操作"""


class RegistrationNotAllowedError(StructuralRejectionError):
    """任务当前不接受自助报名"""


class TeamMismatchError(StructuralRejectionError):
    """目标父任务属于其他团队"""

    def __init__(self, task_id: str, target_parent_id: str, team_name: str | None) -> None:
        super().__init__(
            f"Task {task_id} can only move under a parent of the same team or without team, "
            f"{target_parent_id} belongs to {team_name}"
        )
        self.task_id = task_id
        self.target_parent_id = target_parent_id
        self.team_name = team_name

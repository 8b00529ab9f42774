"""Domain Models 单元测试

测试内容：
1. 枚举值
2. Pydantic 模型校验与规整
"""

from datetime import UTC, datetime

import pytest
from inzet.core.models import (
    Capability,
    Member,
    Proposal,
    Task,
    TaskPermissions,
    TaskStatus,
)
from pydantic import ValidationError

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestEnums:
    def test_task_status_values(self):
        assert TaskStatus.AVAILABLE == "AVAILABLE"
        assert TaskStatus("DONE") == TaskStatus.DONE


class TestTask:
    def test_own_coordinators_sorted_and_deduplicated(self):
        task = Task(
            task_id="t",
            title="Zaalwacht",
            own_coordinator_aliases=["Thomas", "Edgar", "Thomas", ""],
            created_at=_NOW,
            updated_at=_NOW,
        )
        assert task.own_coordinator_aliases == ["Edgar", "Thomas"]

    def test_defaults(self):
        task = Task(task_id="t", title="Zaalwacht", created_at=_NOW, updated_at=_NOW)
        assert task.status == TaskStatus.AVAILABLE
        assert task.points == 0
        assert task.coordination_type is None
        assert task.parent_id is None

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            Task(task_id="t", title="x", points=-1, created_at=_NOW, updated_at=_NOW)


class TestMember:
    @pytest.mark.parametrize(
        "email,is_active,expected",
        [
            ("thomas@example.org", True, True),
            ("thomas@example.org", False, False),
            (None, True, False),
            ("", True, False),
        ],
    )
    def test_is_mail_recipient(self, email, is_active, expected):
        member = Member(alias="Thomas", email=email, is_active=is_active)
        assert member.is_mail_recipient is expected


class TestProposal:
    def test_self_registration(self):
        proposal = Proposal(
            proposal_id="p",
            task_id="t",
            proposer_alias="Thomas",
            proposed_alias="Thomas",
            created_at=_NOW,
        )
        assert proposal.is_self_registration is True

    def test_open_proposal_is_not_self_registration(self):
        proposal = Proposal(proposal_id="p", task_id="t", proposer_alias="Edgar", created_at=_NOW)
        assert proposal.is_self_registration is False


class TestTaskPermissions:
    def test_capabilities(self):
        perms = TaskPermissions(read=True, open=True, manage=True)
        assert perms.capabilities == {Capability.READ, Capability.OPEN, Capability.MANAGE}
        assert perms.allows(Capability.CREATE_SUBTASK) is False

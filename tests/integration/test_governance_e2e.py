"""治理流程端到端集成测试

root-owner 建分支 -> coordinator 分配点数 -> 会员报名 -> 接受 -> 完成 -> digest 投递
"""

from datetime import UTC, datetime, timedelta

import pytest
from inzet.core.governance import TaskFrozenError, available_points
from inzet.core.models import TaskStatus
from inzet.service.bootstrap import lifespan


class TestGovernanceFlow:
    async def test_branch_lifecycle(self, container, integration_mailer):
        service = container.task_service

        # 1. root-owner 建团队分支并指派 coordinator
        teams = await service.create_task(
            "Edgar", "root", "Teams", points=300, own_coordinator_aliases=["Thomas"]
        )
        await service.subscribe("Edgar", teams.task_id)

        # 2. coordinator 分配点数；超出预算的任务置零
        jeugd = await service.create_task("Thomas", teams.task_id, "Jeugd", points=120)
        training = await service.create_task("Thomas", jeugd.task_id, "Training", points=500)
        assert jeugd.points == 120
        assert training.points == 0
        tree = await service.load_tree()
        assert available_points(teams.task_id, tree) == 180

        # 3. 会员报名，coordinator 立即收到邮件
        registration = await service.register_for_task("Klaas", training.task_id)
        assert [mail.to for mail in integration_mailer.sent] == ["thomas@example.org"]

        # 4. 接受后报名者成为 coordinator
        accepted = await service.accept_proposal("Thomas", registration.proposal_id)
        assert accepted.own_coordinator_aliases == ["Klaas"]
        assert integration_mailer.sent[-1].to == "klaas@example.org"

        # 5. 完成后整条分支冻结
        await service.complete_task("Klaas", training.task_id)
        with pytest.raises(TaskFrozenError):
            await service.update_task("Klaas", training.task_id, title="Training B")

        # 6. 订阅 digest 到期后一次性投递
        report = await container.scheduler.flush_due(now=datetime.now(UTC) + timedelta(hours=2))
        assert report.sent == 1
        digest = integration_mailer.sent[-1]
        assert digest.to == "edgar@example.org"
        assert digest.subject == "Inzet digest (elk uur): Nieuwe subtaken op abonnement"
        assert '"Jeugd"' in digest.body
        assert '"Training"' in digest.body

    async def test_state_survives_restart(self, container, integration_db_path, integration_mailer):
        service = container.task_service
        teams = await service.create_task("Edgar", "root", "Teams", points=300)
        await service.propose_task("Edgar", teams.task_id, "Thomas")

        async with lifespan(db_path=integration_db_path, mailer=integration_mailer) as reopened:
            tree = await reopened.task_service.load_tree()
            assert tree.require(teams.task_id).points == 300
            assert tree.require(teams.task_id).status == TaskStatus.AVAILABLE
            views = await reopened.task_service.list_open_proposals("Thomas")
            assert [view.can_decide for view in views] == [True]

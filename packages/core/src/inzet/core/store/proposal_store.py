"""ProposalStore SQLite 实现"""

from datetime import datetime

import aiosqlite

from ..models.enums import ProposalStatus
from ..models.proposal import Proposal

_PROPOSAL_COLUMNS = "proposal_id, task_id, proposer_alias, proposed_alias, status, created_at"


class SqliteProposalStore:
    """ProposalStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_proposal(self, proposal: Proposal) -> None:
        await self._conn.execute(
            f"INSERT INTO proposals ({_PROPOSAL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            (
                proposal.proposal_id,
                proposal.task_id,
                proposal.proposer_alias,
                proposal.proposed_alias,
                proposal.status.value,
                proposal.created_at.isoformat(),
            ),
        )

    async def get_proposal(self, proposal_id: str) -> Proposal | None:
        cursor = await self._conn.execute(
            f"SELECT {_PROPOSAL_COLUMNS} FROM proposals WHERE proposal_id = ?",
            (proposal_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_proposal(row)

    async def list_for_task(
        self,
        task_id: str,
        status: ProposalStatus | None = None,
    ) -> list[Proposal]:
        """查询任务的提案，按创建时间排序"""
        if status is None:
            cursor = await self._conn.execute(
                f"SELECT {_PROPOSAL_COLUMNS} FROM proposals "
                "WHERE task_id = ? ORDER BY created_at",
                (task_id,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_PROPOSAL_COLUMNS} FROM proposals "
                "WHERE task_id = ? AND status = ? ORDER BY created_at",
                (task_id, status.value),
            )
        return [self._row_to_proposal(row) for row in await cursor.fetchall()]

    async def list_by_status(self, status: ProposalStatus) -> list[Proposal]:
        cursor = await self._conn.execute(
            f"SELECT {_PROPOSAL_COLUMNS} FROM proposals WHERE status = ? ORDER BY created_at",
            (status.value,),
        )
        return [self._row_to_proposal(row) for row in await cursor.fetchall()]

    async def find_open(
        self,
        task_id: str,
        proposer_alias: str,
        proposed_alias: str | None,
    ) -> Proposal | None:
        """查找相同 (task, proposer, proposed) 的开放提案，用于去重"""
        cursor = await self._conn.execute(
            f"SELECT {_PROPOSAL_COLUMNS} FROM proposals "
            "WHERE task_id = ? AND proposer_alias = ? AND proposed_alias IS ? AND status = ?",
            (task_id, proposer_alias, proposed_alias, ProposalStatus.OPEN.value),
        )
        row = await cursor.fetchone()
        return self._row_to_proposal(row) if row is not None else None

    async def update_status(self, proposal_id: str, status: ProposalStatus) -> None:
        await self._conn.execute(
            "UPDATE proposals SET status = ? WHERE proposal_id = ?",
            (status.value, proposal_id),
        )

    async def delete_proposal(self, proposal_id: str) -> None:
        await self._conn.execute(
            "DELETE FROM proposals WHERE proposal_id = ?",
            (proposal_id,),
        )

    @staticmethod
    def _row_to_proposal(row: aiosqlite.Row) -> Proposal:
        return Proposal(
            proposal_id=row[0],
            task_id=row[1],
            proposer_alias=row[2],
            proposed_alias=row[3],
            status=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )

"""Letter, reviewer slot and action log repositories."""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.db.models.letter import LetterActionLogRow, LetterReviewerRow, LetterRow
from letterflow.models.enums import ReviewerStatus, WorkflowStatus
from letterflow.repositories.base import BaseRepository


class LetterRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, LetterRow)

    async def get(self, letter_id: str, include_deleted: bool = False) -> LetterRow | None:
        stmt = select(LetterRow).where(LetterRow.letter_id == letter_id)
        if not include_deleted:
            stmt = stmt.where(LetterRow.deleted_at.is_(None))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, letter_id: str) -> LetterRow | None:
        """Load a live letter holding a row lock until the transaction ends."""
        stmt = (
            select(LetterRow)
            .where(LetterRow.letter_id == letter_id, LetterRow.deleted_at.is_(None))
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_creator(self, creator_id: str) -> list[LetterRow]:
        return await self.list_where(
            LetterRow.creator_id == creator_id,
            LetterRow.deleted_at.is_(None),
            order_by=LetterRow.created_at.desc(),
        )

    async def list_awaiting(self, user_id: str) -> list[LetterRow]:
        return await self.list_where(
            LetterRow.next_action_by_id == user_id,
            LetterRow.deleted_at.is_(None),
            order_by=LetterRow.created_at.asc(),
        )

    async def list_rejected_for_creator(self, creator_id: str) -> list[LetterRow]:
        return await self.list_where(
            LetterRow.creator_id == creator_id,
            LetterRow.workflow_status == WorkflowStatus.REJECTED,
            LetterRow.deleted_at.is_(None),
            order_by=LetterRow.updated_at.desc(),
        )

    async def list_deleted_for_creator(self, creator_id: str) -> list[LetterRow]:
        return await self.list_where(
            LetterRow.creator_id == creator_id,
            LetterRow.deleted_at.is_not(None),
            order_by=LetterRow.deleted_at.desc(),
        )


class LetterReviewerRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, LetterReviewerRow)

    async def list_for_letter(self, letter_id: str) -> list[LetterReviewerRow]:
        """All slots of a letter ordered by sequence_order."""
        return await self.list_where(
            LetterReviewerRow.letter_id == letter_id,
            order_by=LetterReviewerRow.sequence_order.asc(),
        )

    async def get_slot(self, letter_id: str, user_id: str, sequence_order: int) -> LetterReviewerRow | None:
        stmt = select(LetterReviewerRow).where(
            LetterReviewerRow.letter_id == letter_id,
            LetterReviewerRow.user_id == user_id,
            LetterReviewerRow.sequence_order == sequence_order,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def next_pending_after(self, letter_id: str, sequence_order: int) -> LetterReviewerRow | None:
        """Pending slot with the smallest sequence_order strictly greater than the given one."""
        stmt = (
            select(LetterReviewerRow)
            .where(
                LetterReviewerRow.letter_id == letter_id,
                LetterReviewerRow.sequence_order > sequence_order,
                LetterReviewerRow.status == ReviewerStatus.PENDING,
            )
            .order_by(LetterReviewerRow.sequence_order.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def holds_slot(self, letter_id: str, user_id: str) -> bool:
        stmt = select(LetterReviewerRow.reviewer_id).where(
            LetterReviewerRow.letter_id == letter_id,
            LetterReviewerRow.user_id == user_id,
        ).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def letter_ids_for_user(self, user_id: str) -> list[str]:
        stmt = select(LetterReviewerRow.letter_id).where(LetterReviewerRow.user_id == user_id).distinct()
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def reset_all(self, letter_id: str) -> list[LetterReviewerRow]:
        """Return every slot of the letter to pending, clearing action history."""
        rows = await self.list_for_letter(letter_id)
        for row in rows:
            row.status = ReviewerStatus.PENDING
            row.acted_at = None
            row.reassigned_from_user_id = None
        await self.session.flush()
        return rows

    async def mark(self, row: LetterReviewerRow, status: ReviewerStatus, acted_at: datetime | None) -> None:
        row.status = status
        row.acted_at = acted_at
        await self.session.flush()

    async def delete_for_letter(self, letter_id: str) -> None:
        await self.session.execute(delete(LetterReviewerRow).where(LetterReviewerRow.letter_id == letter_id))


class LetterActionLogRepository(BaseRepository):
    """Append-only: no update or per-row delete helpers are exposed."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, LetterActionLogRow)

    async def list_for_letter(self, letter_id: str) -> list[LetterActionLogRow]:
        return await self.list_where(
            LetterActionLogRow.letter_id == letter_id,
            order_by=LetterActionLogRow.created_at.asc(),
        )

    async def delete_for_letter(self, letter_id: str) -> None:
        await self.session.execute(delete(LetterActionLogRow).where(LetterActionLogRow.letter_id == letter_id))

"""Read paths and creator-side lifecycle for letters: views, listings, signed URLs, delete/restore, comments."""

from __future__ import annotations

import logging

from letterflow.collaborators.base import DocumentNotFoundError
from letterflow.db.base import utcnow
from letterflow.db.models.letter import LetterRow
from letterflow.errors.exceptions import (
    AuthorizationError,
    DependencyFailureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from letterflow.models.enums import LetterActionType, WorkflowStatus
from letterflow.models.letter import LetterSummary, LetterView, PublicLetterView, ViewUrl
from letterflow.repositories.letter_repo import (
    LetterActionLogRepository,
    LetterRepository,
    LetterReviewerRepository,
)
from letterflow.services.letter_base import LetterServiceBase, to_summary

logger = logging.getLogger(__name__)


class LetterAccessService(LetterServiceBase):
    async def find_by_id(self, letter_id: str, user_id: str | None) -> LetterView:
        """Readable by the creator, any slot holder, or anyone once approved."""
        async with self.deps.session_factory() as session:
            letter = await LetterRepository(session).get(letter_id)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            await self.require_read(session, letter, user_id)
            return await self.build_view(session, letter)

    async def generate_signed_pdf_view_url(self, letter_id: str, user_id: str | None) -> ViewUrl:
        async with self.deps.session_factory() as session:
            letter = await LetterRepository(session).get(letter_id)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            await self.require_read(session, letter, user_id)
            key = letter.final_signed_pdf_url or letter.signed_pdf_url

        if not key:
            raise NotFoundError("Letter PDF", letter_id)
        ttl = self.deps.signed_url_ttl
        try:
            url = await self.deps.document_store.signed_url(key, ttl)
        except DocumentNotFoundError as exc:
            raise NotFoundError("Letter PDF", letter_id) from exc
        except Exception as exc:
            raise DependencyFailureError("Could not sign document URL", {"error": str(exc)}) from exc
        return ViewUrl(view_url=url, expires_in=ttl)

    async def list_created_by(self, user_id: str) -> list[LetterSummary]:
        async with self.deps.session_factory() as session:
            rows = await LetterRepository(session).list_by_creator(user_id)
        return [to_summary(r) for r in rows]

    async def list_pending_my_action(self, user_id: str) -> list[LetterSummary]:
        async with self.deps.session_factory() as session:
            rows = await LetterRepository(session).list_awaiting(user_id)
        return [to_summary(r) for r in rows]

    async def list_my_rejected(self, user_id: str) -> list[LetterSummary]:
        async with self.deps.session_factory() as session:
            rows = await LetterRepository(session).list_rejected_for_creator(user_id)
        return [to_summary(r) for r in rows]

    async def list_deleted(self, user_id: str) -> list[LetterSummary]:
        async with self.deps.session_factory() as session:
            rows = await LetterRepository(session).list_deleted_for_creator(user_id)
        return [to_summary(r) for r in rows]

    async def get_public_details(self, letter_id: str) -> PublicLetterView:
        """Public verification data; anything but an approved live letter reads as missing."""
        async with self.deps.session_factory() as session:
            letter = await LetterRepository(session).get(letter_id)
        if letter is None or letter.workflow_status != WorkflowStatus.APPROVED:
            raise NotFoundError("Letter", letter_id)
        return PublicLetterView(
            letter_id=letter.letter_id,
            name=letter.name,
            final_signed_pdf_url=letter.final_signed_pdf_url,
            public_link=letter.public_link,
            created_at=letter.created_at,
        )

    async def add_comment(self, letter_id: str, user_id: str, comment: str) -> LetterView:
        if not comment or not comment.strip():
            raise ValidationError("Comment is required")
        async with self.unit_of_work() as session:
            letter = await LetterRepository(session).get(letter_id)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            await self.require_read(session, letter, user_id)
            await self.log_action(session, letter, user_id, LetterActionType.COMMENT, comment.strip())
            return await self.build_view(session, letter)

    # -- lifecycle ---------------------------------------------------------------

    async def soft_delete(self, letter_id: str, user_id: str) -> LetterView:
        async with self.unit_of_work() as session:
            letter = await LetterRepository(session).get_for_update(letter_id)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            self._require_creator(letter, user_id)
            letter.deleted_at = utcnow()
            await session.flush()
            await self.log_action(session, letter, user_id, LetterActionType.DELETE)
            view = await self.build_view(session, letter)
        logger.info("Letter %s moved to trash by %s", letter_id, user_id)
        return view

    async def restore(self, letter_id: str, user_id: str) -> LetterView:
        async with self.unit_of_work() as session:
            letter = await LetterRepository(session).get(letter_id, include_deleted=True)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            self._require_creator(letter, user_id)
            if letter.deleted_at is None:
                raise InvalidStateError("Letter is not deleted", letter.workflow_status)
            letter.deleted_at = None
            await session.flush()
            await self.log_action(session, letter, user_id, LetterActionType.RESTORE)
            view = await self.build_view(session, letter)
        logger.info("Letter %s restored by %s", letter_id, user_id)
        return view

    async def permanent_delete(self, letter_id: str, user_id: str) -> None:
        """Remove a trashed letter with its slots and logs; the activity entry remains."""
        async with self.unit_of_work() as session:
            letters = LetterRepository(session)
            letter = await letters.get(letter_id, include_deleted=True)
            if letter is None:
                raise NotFoundError("Letter", letter_id)
            self._require_creator(letter, user_id)
            if letter.deleted_at is None:
                raise InvalidStateError("Only deleted letters can be permanently deleted", letter.workflow_status)
            await self.deps.activity_logger.record(
                user_id, f"letter_{LetterActionType.PERMANENT_DELETE.value}", "letter", letter_id,
                {"name": letter.name, "workflow_status": letter.workflow_status}, session,
            )
            await LetterReviewerRepository(session).delete_for_letter(letter_id)
            await LetterActionLogRepository(session).delete_for_letter(letter_id)
            await letters.delete(letter)
        logger.info("Letter %s permanently deleted by %s", letter_id, user_id)

    @staticmethod
    def _require_creator(letter: LetterRow, user_id: str) -> None:
        if letter.creator_id != user_id:
            raise AuthorizationError("Only the letter's creator can do this")

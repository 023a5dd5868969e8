"""Letter workflow state machine: review steps, reassignment, final decision and resubmission.

Every transition runs in one unit of work holding a row lock on the letter,
re-validates status and actor before mutating anything, writes its action
log inside the same transaction and only notifies after commit.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.db.base import utcnow
from letterflow.db.models.letter import LetterReviewerRow, LetterRow
from letterflow.errors.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from letterflow.models.enums import (
    ACTIVE_STATUSES,
    FINAL_APPROVER_ORDER,
    LetterActionType,
    NotificationKind,
    PlacementType,
    ReviewerStatus,
    WorkflowStatus,
)
from letterflow.models.letter import FinalApprove, LetterView, Resubmit
from letterflow.models.placement import (
    Placement,
    dump_placements,
    image_placements,
    parse_placements,
    qr_placements,
)
from letterflow.repositories.file_repo import FileRepository
from letterflow.repositories.letter_repo import LetterReviewerRepository
from letterflow.services.letter_base import LetterServiceBase, Notice

logger = logging.getLogger(__name__)


def _require_text(value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


class LetterWorkflowService(LetterServiceBase):
    async def approve_step(self, letter_id: str, actor_id: str, comment: str | None = None) -> LetterView:
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            letter = await self.lock_letter(session, letter_id)
            self.require_status(letter, WorkflowStatus.PENDING_REVIEW)
            self.require_actor(letter, actor_id)
            slots = LetterReviewerRepository(session)
            slot = await self._current_slot(slots, letter, actor_id)

            step = letter.current_step_index
            await slots.mark(slot, ReviewerStatus.APPROVED, utcnow())
            nxt = await slots.next_pending_after(letter_id, step)

            if nxt is not None and nxt.sequence_order < FINAL_APPROVER_ORDER:
                letter.current_step_index = nxt.sequence_order
                letter.next_action_by_id = nxt.user_id
                notices.append(Notice(nxt.user_id, NotificationKind.REVIEW_REQUEST, self.payload(letter)))
            elif nxt is not None:
                letter.workflow_status = WorkflowStatus.PENDING_APPROVAL
                letter.current_step_index = FINAL_APPROVER_ORDER
                letter.next_action_by_id = nxt.user_id
                notices.append(Notice(nxt.user_id, NotificationKind.APPROVAL_REQUEST, self.payload(letter)))
            else:
                source, images = await self._final_source(session, letter, [])
                stored = parse_placements(letter.placements)
                await self.finalize(session, letter, source, images, qr_placements(stored))
                notices.append(Notice(letter.creator_id, NotificationKind.FINAL_APPROVED, self.payload(letter)))
            await session.flush()

            await self.log_action(
                session, letter, actor_id, LetterActionType.APPROVE_REVIEW, comment,
                {"sequence_order": step, "next_action_by_id": letter.next_action_by_id},
            )
            view = await self.build_view(session, letter)

        logger.info("Letter %s step %s approved by %s", letter_id, step, actor_id)
        await self.dispatch(notices)
        return view

    async def reject_step(self, letter_id: str, actor_id: str, reason: str) -> LetterView:
        reason = _require_text(reason, "Rejection reason")
        return await self._reject(
            letter_id, actor_id, reason,
            WorkflowStatus.PENDING_REVIEW, LetterActionType.REJECT_REVIEW, NotificationKind.REVIEW_REJECTED,
        )

    async def final_reject(self, letter_id: str, actor_id: str, reason: str) -> LetterView:
        reason = _require_text(reason, "Rejection reason")
        return await self._reject(
            letter_id, actor_id, reason,
            WorkflowStatus.PENDING_APPROVAL, LetterActionType.FINAL_REJECT, NotificationKind.FINAL_REJECTED,
        )

    async def reassign_step(
        self, letter_id: str, actor_id: str, new_user_id: str, reason: str | None = None
    ) -> LetterView:
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            letter = await self.lock_letter(session, letter_id)
            self.require_status(letter, *ACTIVE_STATUSES)
            self.require_actor(letter, actor_id)
            slots = LetterReviewerRepository(session)
            slot = await self._current_slot(slots, letter, actor_id)

            if new_user_id == letter.creator_id:
                raise ValidationError("The letter's creator cannot take a review slot")
            if await slots.holds_slot(letter_id, new_user_id):
                raise ValidationError(
                    "User already participates in this letter", {"user_id": new_user_id}
                )
            if not await self.deps.user_directory.exists(new_user_id, session):
                raise NotFoundError("User", new_user_id)

            slot.user_id = new_user_id
            slot.status = ReviewerStatus.PENDING
            slot.acted_at = None
            slot.reassigned_from_user_id = actor_id
            letter.next_action_by_id = new_user_id
            await session.flush()

            await self.log_action(
                session, letter, actor_id, LetterActionType.REASSIGN_REVIEW, reason,
                {"from_user_id": actor_id, "to_user_id": new_user_id,
                 "sequence_order": letter.current_step_index},
            )
            notices.append(Notice(
                new_user_id, NotificationKind.REASSIGNED,
                self.payload(letter, reassigned_by=actor_id, reason=reason),
            ))
            view = await self.build_view(session, letter)

        logger.info("Letter %s step %s reassigned from %s to %s", letter_id, view.current_step_index, actor_id, new_user_id)
        await self.dispatch(notices)
        return view

    async def final_approve(self, letter_id: str, actor_id: str, data: FinalApprove | None = None) -> LetterView:
        """Bake the approver's placements and the verification QR onto the intermediate artifact."""
        return await self._final_approve(letter_id, actor_id, data or FinalApprove(), single=False)

    async def final_approve_single(
        self, letter_id: str, actor_id: str, data: FinalApprove | None = None
    ) -> LetterView:
        """Re-render the letter from its template and bake every placement in one pass."""
        return await self._final_approve(letter_id, actor_id, data or FinalApprove(), single=True)

    async def resubmit(self, letter_id: str, actor_id: str, data: Resubmit) -> LetterView:
        comment = _require_text(data.comment, "Resubmission comment")
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            letter = await self.lock_letter(session, letter_id)
            self.require_status(letter, WorkflowStatus.REJECTED)
            if letter.creator_id != actor_id:
                raise AuthorizationError("Only the letter's creator can resubmit it")

            if data.new_signed_file_id:
                files = FileRepository(session)
                revision = await files.get(data.new_signed_file_id)
                if revision is None:
                    raise NotFoundError("File", data.new_signed_file_id)
                letter.signed_pdf_url = revision.path
                await files.mark_allocated(revision)
                await self.log_action(
                    session, letter, actor_id, LetterActionType.UPLOAD_REVISION, None,
                    {"file_id": revision.file_id},
                )

            rows = await LetterReviewerRepository(session).reset_all(letter_id)
            if not rows:
                raise InvalidStateError("Letter has no participants to resubmit to", letter.workflow_status)
            first = rows[0]
            if first.sequence_order < FINAL_APPROVER_ORDER:
                letter.workflow_status = WorkflowStatus.PENDING_REVIEW
            else:
                letter.workflow_status = WorkflowStatus.PENDING_APPROVAL
            letter.current_step_index = first.sequence_order
            letter.next_action_by_id = first.user_id
            await session.flush()

            await self.log_action(
                session, letter, actor_id, LetterActionType.RESUBMIT, comment,
                {"new_signed_file_id": data.new_signed_file_id},
            )
            notices.append(Notice(first.user_id, NotificationKind.RESUBMITTED, self.payload(letter, comment=comment)))
            view = await self.build_view(session, letter)

        logger.info("Letter %s resubmitted by %s", letter_id, actor_id)
        await self.dispatch(notices)
        return view

    # -- internals -------------------------------------------------------------

    async def _current_slot(
        self, slots: LetterReviewerRepository, letter: LetterRow, actor_id: str
    ) -> LetterReviewerRow:
        slot = await slots.get_slot(letter.letter_id, actor_id, letter.current_step_index)
        if slot is None:
            raise NotFoundError("Reviewer slot", f"{letter.letter_id}:{letter.current_step_index}")
        return slot

    async def _reject(
        self,
        letter_id: str,
        actor_id: str,
        reason: str,
        required: WorkflowStatus,
        action: LetterActionType,
        kind: NotificationKind,
    ) -> LetterView:
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            letter = await self.lock_letter(session, letter_id)
            self.require_status(letter, required)
            self.require_actor(letter, actor_id)
            slots = LetterReviewerRepository(session)
            slot = await self._current_slot(slots, letter, actor_id)

            step = letter.current_step_index
            await slots.mark(slot, ReviewerStatus.REJECTED, utcnow())
            letter.workflow_status = WorkflowStatus.REJECTED
            letter.current_step_index = None
            letter.next_action_by_id = None
            await session.flush()

            await self.log_action(session, letter, actor_id, action, reason, {"sequence_order": step})
            notices.append(Notice(letter.creator_id, kind, self.payload(letter, reason=reason, rejected_by=actor_id)))
            view = await self.build_view(session, letter)

        logger.info("Letter %s rejected by %s at step %s", letter_id, actor_id, step)
        await self.dispatch(notices)
        return view

    async def _final_approve(self, letter_id: str, actor_id: str, data: FinalApprove, single: bool) -> LetterView:
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            letter = await self.lock_letter(session, letter_id)
            self.require_status(letter, WorkflowStatus.PENDING_APPROVAL)
            self.require_actor(letter, actor_id)
            slots = LetterReviewerRepository(session)
            slot = await slots.get_slot(letter_id, actor_id, FINAL_APPROVER_ORDER)
            if slot is None:
                raise NotFoundError("Approver slot", letter_id)

            if data.name:
                letter.name = data.name
            stored = parse_placements(letter.placements)
            added: list[Placement] = list(data.placements)
            if single:
                stored = [self._default_qr_size(p) for p in stored]
                added = [self._default_qr_size(p) for p in added]
                source, images = await self._single_source(session, letter, stored + added, added)
            else:
                source, images = await self._final_source(session, letter, added)

            everything = stored + added
            await self.finalize(session, letter, source, images, qr_placements(everything))
            letter.placements = dump_placements(everything)
            await slots.mark(slot, ReviewerStatus.APPROVED, utcnow())
            await session.flush()

            await self.log_action(
                session, letter, actor_id, LetterActionType.FINAL_APPROVE, data.comment,
                {"final_signed_pdf_url": letter.final_signed_pdf_url,
                 "placements_added": len(added), "single_step": single},
            )
            notices.append(Notice(letter.creator_id, NotificationKind.FINAL_APPROVED, self.payload(letter)))
            view = await self.build_view(session, letter)

        logger.info("Letter %s final-approved by %s", letter_id, actor_id)
        await self.dispatch(notices)
        return view

    async def _final_source(
        self, session: AsyncSession, letter: LetterRow, added: list[Placement]
    ) -> tuple[bytes, list[Placement]]:
        """Source PDF for finalisation and the image placements still to bake onto it.

        The intermediate artifact already carries the stored placements; a
        letter without one is rendered from its template with everything baked.
        """
        if letter.signed_pdf_url:
            return await self.read_document(letter.signed_pdf_url), image_placements(added)
        rendered = await self.render_letter_template(session, letter)
        if rendered is None:
            raise InvalidStateError("Letter has no document to approve", letter.workflow_status)
        stored = parse_placements(letter.placements)
        return rendered, image_placements(stored + added)

    async def _single_source(
        self, session: AsyncSession, letter: LetterRow, everything: list[Placement], added: list[Placement]
    ) -> tuple[bytes, list[Placement]]:
        rendered = await self.render_letter_template(session, letter)
        if rendered is not None:
            return rendered, image_placements(everything)
        if letter.signed_pdf_url:
            return await self.read_document(letter.signed_pdf_url), image_placements(added)
        raise InvalidStateError("Letter has no template content or signed PDF to approve", letter.workflow_status)

    def _default_qr_size(self, placement: Placement) -> Placement:
        if placement.type != PlacementType.QRCODE:
            return placement
        size = self.deps.pdf.qr_default_size
        return placement.model_copy(
            update={"width": size, "height": size, "width_pct": None, "height_pct": None}
        )

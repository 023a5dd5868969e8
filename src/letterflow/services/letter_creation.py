"""Letter creation: builds the participant sequence and persists a new letter."""

from __future__ import annotations

import logging
import uuid
from pathlib import PurePosixPath

from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.db.models.letter import LetterReviewerRow, LetterRow
from letterflow.errors.exceptions import NotFoundError, ValidationError
from letterflow.models.enums import (
    FINAL_APPROVER_ORDER,
    LetterActionType,
    NotificationKind,
    ReviewerStatus,
    WorkflowStatus,
)
from letterflow.models.letter import LetterFromPdfCreate, LetterFromTemplateCreate, LetterView
from letterflow.models.placement import dump_placements, image_placements, qr_placements
from letterflow.repositories.file_repo import FileRepository
from letterflow.services.id_generator import generate_id
from letterflow.services.letter_base import PDF_MIME, LetterServiceBase, Notice

logger = logging.getLogger(__name__)


def intermediate_key(stem: str) -> str:
    return f"letters/intermediate/{stem}-signed-{uuid.uuid4().hex}.pdf"


def build_participants(
    reviewer_ids: list[str], submitter_id: str, owner_id: str | None
) -> tuple[list[str], str | None]:
    """Return (ordered reviewers, approver) for a template letter.

    The submitter and the template owner never review; duplicates keep
    their first position. The owner approves unless they are the submitter.
    """
    reviewers: list[str] = []
    for user_id in reviewer_ids:
        if user_id in (submitter_id, owner_id) or user_id in reviewers:
            continue
        reviewers.append(user_id)
    approver = owner_id if owner_id and owner_id != submitter_id else None
    return reviewers, approver


def check_reviewer_count(reviewers: list[str]) -> None:
    """Reviewer orders must stay below the approver's reserved order."""
    if len(reviewers) >= FINAL_APPROVER_ORDER:
        raise ValidationError(
            f"A letter can have at most {FINAL_APPROVER_ORDER - 1} reviewers",
            {"reviewer_count": len(reviewers)},
        )


class LetterCreationService(LetterServiceBase):
    async def create_from_template(self, submitter_id: str, data: LetterFromTemplateCreate) -> LetterView:
        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            await self._require_user(session, submitter_id)
            template = await self.deps.template_provider.get_template(data.template_id, session)
            if template is None:
                raise NotFoundError("Template", data.template_id)

            reviewers, approver = build_participants(template.reviewers, submitter_id, template.owner_id)
            if reviewers and template.owner_id is None:
                raise ValidationError(
                    "Template has reviewers configured but no owner to approve",
                    {"template_id": template.template_id},
                )
            # Without an approver the letter is finalised from its rendered content
            if approver is None and not template.content:
                raise ValidationError(
                    "Template has no content to approve without a final approver",
                    {"template_id": template.template_id},
                )
            check_reviewer_count(reviewers)
            for user_id in reviewers + ([approver] if approver else []):
                await self._require_user(session, user_id)

            letter = LetterRow(
                letter_id=generate_id("ltr_"),
                template_id=template.template_id,
                creator_id=submitter_id,
                name=data.name or template.name,
                form_data=data.form_data,
                workflow_status=WorkflowStatus.DRAFT,
                placements=dump_placements(data.placements),
            )

            rendered = None
            if template.content:
                rendered = await self.render_template(letter.name, template.content, data.form_data)
                baked = await self.deps.pdf.bake(rendered, image_placements(data.placements))
                letter.signed_pdf_url = await self.store_document(
                    session, baked, intermediate_key(f"letter-{letter.letter_id}"), PDF_MIME
                )

            session.add(letter)
            await session.flush()
            await self._add_slots(session, letter, reviewers, approver)

            if reviewers or approver:
                notices.append(self._start(letter, reviewers, approver))
            else:
                logger.warning("Letter %s has no reviewers and no approver; approving on creation", letter.letter_id)
                await self.finalize(
                    session, letter, rendered, image_placements(data.placements), qr_placements(data.placements)
                )
                notices.append(Notice(submitter_id, NotificationKind.FINAL_APPROVED, self.payload(letter)))

            await self.log_action(
                session, letter, submitter_id, LetterActionType.SUBMIT, data.comment,
                {"source": "template", "template_id": template.template_id,
                 "reviewers": reviewers, "approver": approver},
            )
            view = await self.build_view(session, letter)

        logger.info("Letter %s created from template %s by %s", view.letter_id, data.template_id, submitter_id)
        await self.dispatch(notices)
        return view

    async def create_from_interactive_pdf(self, submitter_id: str, data: LetterFromPdfCreate) -> LetterView:
        if not data.reviewers:
            raise ValidationError("At least one reviewer is required")
        if len(set(data.reviewers)) != len(data.reviewers):
            raise ValidationError("Reviewers must be unique", {"reviewers": data.reviewers})
        if submitter_id in data.reviewers or data.approver == submitter_id:
            raise ValidationError("The submitter cannot review or approve their own letter")
        if data.approver and data.approver in data.reviewers:
            raise ValidationError("The approver cannot also be a reviewer", {"approver": data.approver})
        check_reviewer_count(data.reviewers)

        notices: list[Notice] = []
        async with self.unit_of_work() as session:
            await self._require_user(session, submitter_id)
            files = FileRepository(session)
            source_file = await files.get(data.original_file_id)
            if source_file is None:
                raise NotFoundError("File", data.original_file_id)
            for user_id in data.reviewers + ([data.approver] if data.approver else []):
                await self._require_user(session, user_id)

            source_pdf = await self.read_document(source_file.path)
            baked = await self.deps.pdf.bake(source_pdf, image_placements(data.placements))
            signed_key = await self.store_document(
                session, baked, intermediate_key(PurePosixPath(source_file.name).stem or "letter"), PDF_MIME
            )

            letter = LetterRow(
                letter_id=generate_id("ltr_"),
                template_id=None,
                creator_id=submitter_id,
                original_file_id=source_file.file_id,
                name=data.name or source_file.name,
                form_data=None,
                workflow_status=WorkflowStatus.DRAFT,
                signed_pdf_url=signed_key,
                placements=dump_placements(data.placements),
            )
            session.add(letter)
            await session.flush()
            await self._add_slots(session, letter, list(data.reviewers), data.approver)
            await files.mark_allocated(source_file)
            notices.append(self._start(letter, list(data.reviewers), data.approver))

            await self.log_action(
                session, letter, submitter_id, LetterActionType.SUBMIT, data.comment,
                {"source": "interactive_pdf", "file_id": source_file.file_id,
                 "reviewers": list(data.reviewers), "approver": data.approver},
            )
            view = await self.build_view(session, letter)

        logger.info("Letter %s created from file %s by %s", view.letter_id, data.original_file_id, submitter_id)
        await self.dispatch(notices)
        return view

    async def _require_user(self, session: AsyncSession, user_id: str) -> None:
        if not await self.deps.user_directory.exists(user_id, session):
            raise NotFoundError("User", user_id)

    async def _add_slots(
        self, session: AsyncSession, letter: LetterRow, reviewers: list[str], approver: str | None
    ) -> None:
        slots = [(order, user_id) for order, user_id in enumerate(reviewers, start=1)]
        if approver:
            slots.append((FINAL_APPROVER_ORDER, approver))
        for order, user_id in slots:
            session.add(
                LetterReviewerRow(
                    reviewer_id=generate_id("lrv_"),
                    letter_id=letter.letter_id,
                    user_id=user_id,
                    sequence_order=order,
                    status=ReviewerStatus.PENDING,
                )
            )
        await session.flush()

    def _start(self, letter: LetterRow, reviewers: list[str], approver: str | None) -> Notice:
        """Point the letter at its first actor and return the notice for them."""
        if reviewers:
            letter.workflow_status = WorkflowStatus.PENDING_REVIEW
            letter.current_step_index = 1
            letter.next_action_by_id = reviewers[0]
            kind = NotificationKind.REVIEW_REQUEST
        else:
            letter.workflow_status = WorkflowStatus.PENDING_APPROVAL
            letter.current_step_index = FINAL_APPROVER_ORDER
            letter.next_action_by_id = approver
            kind = NotificationKind.APPROVAL_REQUEST
        return Notice(letter.next_action_by_id, kind, self.payload(letter, submitter_id=letter.creator_id))

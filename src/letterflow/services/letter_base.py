"""Shared plumbing for the letter services: unit of work, views, guards and finalisation."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letterflow.collaborators.base import (
    ActivityLogger,
    DocumentNotFoundError,
    DocumentRenderer,
    DocumentStore,
    NotificationDispatcher,
    QrEncoder,
    TemplateProvider,
    UserDirectory,
)
from letterflow.collaborators.renderer import RenderError
from letterflow.db.base import utcnow
from letterflow.db.models.letter import LetterActionLogRow, LetterRow
from letterflow.errors.exceptions import (
    AuthorizationError,
    DependencyFailureError,
    InvalidStateError,
    LetterflowError,
    NotFoundError,
)
from letterflow.logging_config import bind_letter_context
from letterflow.models.enums import LetterActionType, WorkflowStatus
from letterflow.models.letter import ActionLogView, LetterSummary, LetterView, ReviewerView
from letterflow.models.placement import Placement, QrCodePlacement
from letterflow.repositories.letter_repo import (
    LetterActionLogRepository,
    LetterRepository,
    LetterReviewerRepository,
)
from letterflow.services.id_generator import generate_id
from letterflow.services.pdf_manipulator import PdfManipulator

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"

# session.info key listing documents uploaded inside the current transaction
UPLOADED_KEYS = "letterflow.uploaded_keys"


class Notice(NamedTuple):
    """A notification queued during a transition and sent after commit."""

    user_id: str
    kind: str
    payload: dict[str, Any]


@dataclass
class LetterDependencies:
    """Everything a letter service needs, injected at the composition root."""

    session_factory: async_sessionmaker[AsyncSession]
    document_store: DocumentStore
    template_provider: TemplateProvider
    user_directory: UserDirectory
    notifier: NotificationDispatcher
    activity_logger: ActivityLogger
    qr_encoder: QrEncoder
    renderer: DocumentRenderer
    pdf: PdfManipulator
    public_base_url: str
    signed_url_ttl: int = 300


def public_link_for(public_base_url: str, letter_id: str) -> str:
    return f"{public_base_url.rstrip('/')}/public/letters/{letter_id}"


def qr_key_for(letter_id: str) -> str:
    return f"qr-codes/letter-{letter_id}-qr.png"


def final_key_for(letter_id: str) -> str:
    return f"final-letters/letter-{letter_id}-final-approved.pdf"


def to_summary(letter: LetterRow) -> LetterSummary:
    return LetterSummary(
        letter_id=letter.letter_id,
        name=letter.name,
        template_id=letter.template_id,
        creator_id=letter.creator_id,
        workflow_status=letter.workflow_status,
        current_step_index=letter.current_step_index,
        next_action_by_id=letter.next_action_by_id,
        created_at=letter.created_at,
        updated_at=letter.updated_at,
    )


class LetterServiceBase:
    def __init__(self, deps: LetterDependencies):
        self.deps = deps

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """One transaction: committed on success, rolled back explicitly on any error."""
        session = self.deps.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            orphaned = session.info.get(UPLOADED_KEYS)
            if orphaned:
                logger.warning("Transaction rolled back; documents left orphaned in storage: %s", ", ".join(orphaned))
            raise
        finally:
            await session.close()

    async def dispatch(self, notices: list[Notice]) -> None:
        """Send queued notices; failures are logged and never propagate."""
        for notice in notices:
            try:
                await self.deps.notifier.notify(notice.user_id, notice.kind, notice.payload)
            except Exception:
                logger.warning(
                    "Notification %s to %s for letter %s failed",
                    notice.kind, notice.user_id, notice.payload.get("letter_id"),
                    exc_info=True,
                )

    # -- loading and guards ---------------------------------------------------

    async def lock_letter(self, session: AsyncSession, letter_id: str) -> LetterRow:
        bind_letter_context(letter_id)
        letter = await LetterRepository(session).get_for_update(letter_id)
        if letter is None:
            raise NotFoundError("Letter", letter_id)
        return letter

    @staticmethod
    def require_status(letter: LetterRow, *allowed: WorkflowStatus) -> None:
        if letter.workflow_status not in allowed:
            expected = " or ".join(s.value for s in allowed)
            raise InvalidStateError(
                f"Letter must be {expected}, not {letter.workflow_status}",
                current_status=letter.workflow_status,
            )

    @staticmethod
    def require_actor(letter: LetterRow, actor_id: str) -> None:
        if letter.next_action_by_id != actor_id:
            raise AuthorizationError("It is not this user's turn to act on the letter")

    async def can_read(self, session: AsyncSession, letter: LetterRow, user_id: str | None) -> bool:
        if letter.workflow_status == WorkflowStatus.APPROVED:
            return True
        if user_id is None:
            return False
        if letter.creator_id == user_id:
            return True
        return await LetterReviewerRepository(session).holds_slot(letter.letter_id, user_id)

    async def require_read(self, session: AsyncSession, letter: LetterRow, user_id: str | None) -> None:
        if not await self.can_read(session, letter, user_id):
            raise AuthorizationError("Not authorized to view this letter")

    # -- writes ----------------------------------------------------------------

    async def log_action(
        self,
        session: AsyncSession,
        letter: LetterRow,
        user_id: str,
        action: LetterActionType,
        comment: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append the action log row and the matching activity entry in the same transaction."""
        session.add(
            LetterActionLogRow(
                log_id=generate_id("log_"),
                letter_id=letter.letter_id,
                user_id=user_id,
                action_type=action,
                comment=comment,
                details=details,
                created_at=utcnow(),
            )
        )
        await session.flush()
        activity_details = {"workflow_status": letter.workflow_status}
        if details:
            activity_details.update(details)
        await self.deps.activity_logger.record(
            user_id, f"letter_{action.value}", "letter", letter.letter_id, activity_details, session
        )

    async def build_view(self, session: AsyncSession, letter: LetterRow) -> LetterView:
        reviewers = await LetterReviewerRepository(session).list_for_letter(letter.letter_id)
        logs = await LetterActionLogRepository(session).list_for_letter(letter.letter_id)
        return LetterView(
            **to_summary(letter).model_dump(),
            original_file_id=letter.original_file_id,
            form_data=letter.form_data,
            signed_pdf_url=letter.signed_pdf_url,
            final_signed_pdf_url=letter.final_signed_pdf_url,
            public_link=letter.public_link,
            qr_code_url=letter.qr_code_url,
            placements=list(letter.placements or []),
            deleted_at=letter.deleted_at,
            reviewers=[
                ReviewerView(
                    reviewer_id=r.reviewer_id,
                    user_id=r.user_id,
                    sequence_order=r.sequence_order,
                    status=r.status,
                    acted_at=r.acted_at,
                    reassigned_from_user_id=r.reassigned_from_user_id,
                )
                for r in reviewers
            ],
            action_logs=[
                ActionLogView(
                    log_id=log.log_id,
                    user_id=log.user_id,
                    action_type=log.action_type,
                    comment=log.comment,
                    details=log.details,
                    created_at=log.created_at,
                )
                for log in logs
            ],
        )

    # -- artifacts -------------------------------------------------------------

    async def read_document(self, key: str) -> bytes:
        try:
            return await self.deps.document_store.get_buffer(key)
        except DocumentNotFoundError as exc:
            raise DependencyFailureError(f"Document '{key}' is missing from storage") from exc
        except LetterflowError:
            raise
        except Exception as exc:
            raise DependencyFailureError("Document storage read failed", {"key": key, "error": str(exc)}) from exc

    async def store_document(self, session: AsyncSession, data: bytes, key: str, mime_type: str) -> str:
        """Upload an artifact and remember its key on the session until the transaction ends."""
        try:
            stored = await self.deps.document_store.put_buffer(data, key, mime_type)
        except Exception as exc:
            raise DependencyFailureError("Document storage upload failed", {"key": key, "error": str(exc)}) from exc
        session.info.setdefault(UPLOADED_KEYS, []).append(stored.key)
        return stored.key

    async def render_template(self, title: str, content: str, form_data: dict[str, Any] | None) -> bytes:
        try:
            return await asyncio.to_thread(self.deps.renderer.render, title, content, form_data or {})
        except RenderError as exc:
            raise DependencyFailureError("Letter template could not be rendered", {"error": str(exc)}) from exc

    async def render_letter_template(self, session: AsyncSession, letter: LetterRow) -> bytes | None:
        """Render the letter's template with its form data, or None when there is nothing to render."""
        if not letter.template_id:
            return None
        template = await self.deps.template_provider.get_template(letter.template_id, session)
        if template is None or not template.content:
            return None
        return await self.render_template(letter.name or template.name, template.content, letter.form_data)

    async def finalize(
        self,
        session: AsyncSession,
        letter: LetterRow,
        source_pdf: bytes,
        images: list[Placement],
        qr_targets: list[QrCodePlacement],
    ) -> None:
        """Bake images and the verification QR, upload both artifacts and mark the letter approved.

        Uploads happen before the caller commits, so a storage failure aborts
        the transition.
        """
        public_link = public_link_for(self.deps.public_base_url, letter.letter_id)
        try:
            qr_png = await asyncio.to_thread(self.deps.qr_encoder.encode, public_link)
        except Exception as exc:
            raise DependencyFailureError("QR code generation failed", {"error": str(exc)}) from exc

        final_pdf = await self.deps.pdf.bake(source_pdf, images, qr_png=qr_png, qr_targets=qr_targets)

        qr_key = await self.store_document(session, qr_png, qr_key_for(letter.letter_id), "image/png")
        final_key = await self.store_document(session, final_pdf, final_key_for(letter.letter_id), PDF_MIME)

        letter.workflow_status = WorkflowStatus.APPROVED
        letter.current_step_index = None
        letter.next_action_by_id = None
        letter.final_signed_pdf_url = final_key
        letter.public_link = public_link
        letter.qr_code_url = qr_key
        await session.flush()
        logger.info("Letter %s approved; final artifact at %s", letter.letter_id, final_key)

    def payload(self, letter: LetterRow, **extra: Any) -> dict[str, Any]:
        data = {"letter_id": letter.letter_id, "letter_name": letter.name}
        data.update({k: v for k, v in extra.items() if v is not None})
        return data

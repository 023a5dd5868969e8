"""Letter workflow tables."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letterflow.db.base import Base, TimestampMixin, utcnow


class LetterRow(Base, TimestampMixin):
    __tablename__ = "letters"

    letter_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    template_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("templates.template_id", ondelete="SET NULL"), nullable=True, index=True
    )
    creator_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=False, index=True)
    original_file_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("files.file_id"), nullable=True)
    name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    form_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    workflow_status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft", index=True)
    current_step_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_action_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    signed_pdf_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    final_signed_pdf_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    public_link: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    qr_code_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    placements: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class LetterReviewerRow(Base, TimestampMixin):
    __tablename__ = "letter_reviewers"
    __table_args__ = (Index("ix_letter_reviewers_letter_order", "letter_id", "sequence_order"),)

    reviewer_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    letter_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("letters.letter_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=False, index=True)
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    acted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reassigned_from_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)


class LetterActionLogRow(Base):
    __tablename__ = "letter_action_logs"

    log_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    letter_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("letters.letter_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

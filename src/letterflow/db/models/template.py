"""Letter template tables."""

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from letterflow.db.base import Base, TimestampMixin


class TemplateRow(Base, TimestampMixin):
    __tablename__ = "templates"

    template_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)


class TemplateReviewerRow(Base, TimestampMixin):
    __tablename__ = "template_reviewers"
    __table_args__ = (UniqueConstraint("template_id", "user_id", name="uq_template_reviewer"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("templates.template_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

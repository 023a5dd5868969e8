"""Uploaded file records (binary content lives in the document store)."""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from letterflow.db.base import Base, TimestampMixin


class FileRow(Base, TimestampMixin):
    __tablename__ = "files"

    file_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    path: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False, default="application/pdf")
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_allocated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

"""Abstract interfaces for the services the letter workflow consumes.

Every workflow service receives concrete implementations through its
constructor; nothing here is resolved from module globals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession


class DocumentNotFoundError(Exception):
    """Raised by a document store when a key does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Document '{key}' not found")


@dataclass
class StoredDocument:
    key: str
    public_url: str | None = None


@dataclass
class TemplateInfo:
    template_id: str
    owner_id: str | None
    name: str
    content: str | None
    reviewers: list[str] = field(default_factory=list)


@dataclass
class UserInfo:
    user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email


class DocumentStore(ABC):
    """Binary storage keyed by path."""

    @abstractmethod
    async def get_buffer(self, key: str) -> bytes:
        """Return the stored bytes or raise DocumentNotFoundError."""
        ...

    @abstractmethod
    async def put_buffer(self, data: bytes, key: str, mime_type: str) -> StoredDocument:
        ...

    @abstractmethod
    async def signed_url(self, key: str, expires_in: int) -> str:
        """Return a short-lived URL granting read access to ``key``."""
        ...


class TemplateProvider(ABC):
    @abstractmethod
    async def get_template(self, template_id: str, session: AsyncSession) -> TemplateInfo | None:
        ...


class UserDirectory(ABC):
    @abstractmethod
    async def exists(self, user_id: str, session: AsyncSession) -> bool:
        ...

    @abstractmethod
    async def get(self, user_id: str, session: AsyncSession) -> UserInfo | None:
        ...


class NotificationDispatcher(ABC):
    """Fire-and-forget side channel, invoked only after commit."""

    @abstractmethod
    async def notify(self, user_id: str, kind: str, payload: dict[str, Any]) -> None:
        ...


class ActivityLogger(ABC):
    """Audit trail writer that joins the caller's transaction."""

    @abstractmethod
    async def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        details: dict[str, Any] | None,
        session: AsyncSession,
    ) -> None:
        ...


class QrEncoder(ABC):
    @abstractmethod
    def encode(self, text: str) -> bytes:
        """Return a PNG image encoding ``text``."""
        ...


class DocumentRenderer(ABC):
    @abstractmethod
    def render(self, title: str, content: str, form_data: dict[str, Any]) -> bytes:
        """Render template content filled with form data to PDF bytes."""
        ...

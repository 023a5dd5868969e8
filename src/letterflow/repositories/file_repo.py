"""File record repository."""

from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.db.models.file import FileRow
from letterflow.repositories.base import BaseRepository


class FileRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, FileRow)

    async def get(self, file_id: str) -> FileRow | None:
        return await self.get_by_id("file_id", file_id)

    async def mark_allocated(self, row: FileRow) -> None:
        row.is_allocated = True
        await self.session.flush()

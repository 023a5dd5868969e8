"""SQL-backed template provider and user directory."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.collaborators.base import TemplateInfo, TemplateProvider, UserDirectory, UserInfo
from letterflow.db.models.template import TemplateReviewerRow, TemplateRow
from letterflow.db.models.user import UserRow


class SqlTemplateProvider(TemplateProvider):
    async def get_template(self, template_id: str, session: AsyncSession) -> TemplateInfo | None:
        template = await session.get(TemplateRow, template_id)
        if template is None:
            return None
        stmt = (
            select(TemplateReviewerRow.user_id)
            .where(TemplateReviewerRow.template_id == template_id)
            .order_by(TemplateReviewerRow.position.asc(), TemplateReviewerRow.id.asc())
        )
        reviewers = list((await session.execute(stmt)).scalars().all())
        return TemplateInfo(
            template_id=template.template_id,
            owner_id=template.owner_id,
            name=template.name,
            content=template.content,
            reviewers=reviewers,
        )


class SqlUserDirectory(UserDirectory):
    """Only active users count as existing."""

    async def _active(self, user_id: str, session: AsyncSession) -> UserRow | None:
        stmt = select(UserRow).where(UserRow.user_id == user_id, UserRow.is_active.is_(True))
        return (await session.execute(stmt)).scalar_one_or_none()

    async def exists(self, user_id: str, session: AsyncSession) -> bool:
        return await self._active(user_id, session) is not None

    async def get(self, user_id: str, session: AsyncSession) -> UserInfo | None:
        user = await self._active(user_id, session)
        if user is None:
            return None
        return UserInfo(
            user_id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
        )

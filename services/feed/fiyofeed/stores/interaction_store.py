"""InteractionStore backed by the social-graph, users and interactions tables."""
import logging

from sqlalchemy import select, union

from fiyofeed.engine.types import ContentType, Interaction, Tag, UserId
from fiyofeed.errors import InvalidContentType
from fiyofeed.models import Follower, Mate, User, UserInteraction
from fiyofeed.stores.base import SqlStore

logger = logging.getLogger(__name__)


class SqlInteractionStore(SqlStore):
    name = "interaction-store"

    async def fetch_mates(self, user_id: UserId) -> set[UserId]:
        # A mate pair is stored once, in either direction
        stmt = union(
            select(Mate.mater_id.label("id")).where(Mate.matee_id == user_id),
            select(Mate.matee_id.label("id")).where(Mate.mater_id == user_id),
        )
        async with self.session("fetch_mates") as db:
            result = await db.execute(stmt)
            return set(result.scalars().all())

    async def fetch_follows(self, user_id: UserId) -> set[UserId]:
        stmt = select(Follower.followee_id).where(Follower.follower_id == user_id)
        async with self.session("fetch_follows") as db:
            result = await db.execute(stmt)
            return set(result.scalars().all())

    async def fetch_interests(self, user_id: UserId) -> list[Tag]:
        stmt = select(User.interest_tags).where(User.id == user_id)
        async with self.session("fetch_interests") as db:
            result = await db.execute(stmt)
            tags = result.scalar_one_or_none()
        return list(tags or [])

    async def fetch_recent_interactions(self, user_id: UserId, limit: int) -> list[Interaction]:
        stmt = (
            select(UserInteraction)
            .where(UserInteraction.user_id == user_id)
            .order_by(UserInteraction.created_at.desc())
            .limit(limit)
        )
        async with self.session("fetch_recent_interactions") as db:
            result = await db.execute(stmt)
            rows = result.scalars().all()

        interactions: list[Interaction] = []
        for row in rows:
            try:
                content_type = ContentType.parse(row.content_type)
            except InvalidContentType:
                logger.warning(
                    "Skipping interaction %s with unknown content type %r",
                    row.id,
                    row.content_type,
                )
                continue
            interactions.append(
                Interaction(
                    content_id=row.content_id,
                    content_type=content_type,
                    action_type=row.action_type,
                    created_at=row.created_at,
                )
            )
        return interactions

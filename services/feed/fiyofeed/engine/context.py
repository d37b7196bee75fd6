"""
User context resolution.

Four independent reads run concurrently:

  mates        : mutual follow edges, either direction
  follows      : one-directional follow edges
  interests    : the user's stored interest tags
  interactions : the N most recent interaction events, newest first

All four must succeed; a single failing read fails the whole resolution.
"""
import asyncio
import logging
from collections import defaultdict

from opentelemetry import trace

from fiyofeed.engine.ports import ContentStore, InteractionStore
from fiyofeed.engine.types import ActionType, Interaction, UserContext, UserId

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def group_interactions(interactions: list[Interaction]) -> dict[str, frozenset]:
    """Group interaction events into action_type → {content_id}."""
    grouped: dict[str, set] = defaultdict(set)
    for item in interactions:
        grouped[item.action_type].add(item.content_id)
    return {action: frozenset(ids) for action, ids in grouped.items()}


class UserContextResolver:
    def __init__(
        self,
        interaction_store: InteractionStore,
        content_store: ContentStore,
        interaction_limit: int = 50,
    ) -> None:
        self._interactions = interaction_store
        self._content = content_store
        self._interaction_limit = interaction_limit

    async def resolve(self, user_id: UserId) -> UserContext:
        with tracer.start_as_current_span("resolve_user_context") as span:
            span.set_attribute("user.id", user_id)

            mates, follows, interests, interactions = await asyncio.gather(
                self._interactions.fetch_mates(user_id),
                self._interactions.fetch_follows(user_id),
                self._interactions.fetch_interests(user_id),
                self._interactions.fetch_recent_interactions(
                    user_id, self._interaction_limit
                ),
            )

            liked_creators = await self._liked_creators(interactions)

            context = UserContext(
                mates=frozenset(mates),
                follows=frozenset(follows),
                interests=tuple(interests or ()),
                interactions_by_type=group_interactions(interactions),
                liked_creators=frozenset(liked_creators),
            )
            span.set_attribute("context.network_size", len(context.network_ids))
            logger.debug(
                "Context for %s: %d mates, %d follows, %d interests, %d interactions",
                user_id,
                len(context.mates),
                len(context.follows),
                len(context.interests),
                len(interactions),
            )
            return context

    async def _liked_creators(self, interactions: list[Interaction]) -> set[UserId]:
        """Authors of the liked content, resolved once per content type."""
        liked_by_type: dict = defaultdict(list)
        for item in interactions:
            if item.action_type == ActionType.LIKE.value:
                liked_by_type[item.content_type].append(item.content_id)

        if not liked_by_type:
            return set()

        author_sets = await asyncio.gather(
            *(
                self._content.fetch_authors_of_content(ids, content_type)
                for content_type, ids in liked_by_type.items()
            )
        )
        creators: set[UserId] = set()
        for authors in author_sets:
            creators |= authors
        return creators

"""Tests for user context resolution."""
import asyncio

import pytest

from fakes import FakeContentStore, FakeInteractionStore, interaction, row
from fiyofeed.engine.context import UserContextResolver, group_interactions
from fiyofeed.engine.types import ContentType, UserContext
from fiyofeed.errors import StoreUnavailable


@pytest.fixture
def stores():
    content = FakeContentStore(
        rows={
            "post": [row("p1", "alice"), row("p2", "bob"), row("p3", "alice")],
            "clip": [row("c1", "carol")],
        }
    )
    interactions = FakeInteractionStore(
        mates={"u1": {"m1", "m2"}},
        follows={"u1": {"f1", "m1"}},
        interests={"u1": ["music", "travel"]},
        interactions={
            "u1": [
                interaction("p1", "like", "post", hours_ago=1),
                interaction("p3", "like", "post", hours_ago=2),
                interaction("c1", "like", "clip", hours_ago=3),
                interaction("p2", "hide", "post", hours_ago=4),
                interaction("p2", "view", "post", hours_ago=5),
            ]
        },
    )
    return content, interactions


class TestGroupInteractions:
    def test_groups_content_ids_by_action(self):
        grouped = group_interactions(
            [
                interaction("a", "like"),
                interaction("b", "like"),
                interaction("a", "hide"),
            ]
        )
        assert grouped == {"like": {"a", "b"}, "hide": {"a"}}

    def test_empty(self):
        assert group_interactions([]) == {}


class TestUserContextResolver:
    @pytest.mark.asyncio
    async def test_resolves_full_context(self, stores):
        content, interactions = stores
        ctx = await UserContextResolver(interactions, content).resolve("u1")

        assert ctx.mates == {"m1", "m2"}
        assert ctx.follows == {"f1", "m1"}
        assert ctx.network_ids == {"m1", "m2", "f1"}
        assert ctx.interests == ("music", "travel")
        assert ctx.interacted("like") == {"p1", "p3", "c1"}
        assert ctx.interacted("hide") == {"p2"}
        assert ctx.interacted("view") == {"p2"}
        assert ctx.liked_creators == {"alice", "carol"}

    @pytest.mark.asyncio
    async def test_liked_creators_looked_up_once_per_content_type(self, stores):
        content, interactions = stores
        await UserContextResolver(interactions, content).resolve("u1")

        lookups = content.called("fetch_authors_of_content")
        assert {c[2] for c in lookups} == {ContentType.POST, ContentType.CLIP}
        by_type = {c[2]: c[1] for c in lookups}
        assert by_type[ContentType.POST] == {"p1", "p3"}
        assert by_type[ContentType.CLIP] == {"c1"}

    @pytest.mark.asyncio
    async def test_no_likes_means_no_author_lookup(self):
        content = FakeContentStore()
        interactions = FakeInteractionStore(
            interactions={"u1": [interaction("p9", "hide")]}
        )
        ctx = await UserContextResolver(interactions, content).resolve("u1")

        assert ctx.liked_creators == frozenset()
        assert content.called("fetch_authors_of_content") == []

    @pytest.mark.asyncio
    async def test_interaction_history_is_limited(self, stores):
        content, interactions = stores
        await UserContextResolver(interactions, content, interaction_limit=50).resolve("u1")
        assert interactions.called("fetch_recent_interactions") == [
            ("fetch_recent_interactions", "u1", 50)
        ]

    @pytest.mark.asyncio
    async def test_resolved_context_is_read_only_and_hashable(self, stores):
        content, interactions = stores
        ctx = await UserContextResolver(interactions, content).resolve("u1")

        with pytest.raises(TypeError):
            ctx.interactions_by_type["like"] = frozenset()
        assert ctx.interacted("like") == {"p1", "p3", "c1"}
        hash(ctx)

    def test_caller_dict_is_copied(self):
        source = {"hide": {"x"}}
        ctx = UserContext(interactions_by_type=source)
        source["hide"].add("y")
        source["like"] = {"z"}

        assert ctx.interacted("hide") == {"x"}
        assert ctx.interacted("like") == frozenset()

    @pytest.mark.asyncio
    async def test_cold_user_has_empty_context(self):
        ctx = await UserContextResolver(FakeInteractionStore(), FakeContentStore()).resolve("new")
        assert ctx.mates == ctx.follows == ctx.liked_creators == frozenset()
        assert ctx.interests == ()
        assert ctx.interactions_by_type == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failing",
        ["fetch_mates", "fetch_follows", "fetch_interests", "fetch_recent_interactions"],
    )
    async def test_any_failing_read_fails_the_resolution(self, stores, failing):
        content, interactions = stores
        interactions.fail_on.add(failing)
        with pytest.raises(StoreUnavailable):
            await UserContextResolver(interactions, content).resolve("u1")

    @pytest.mark.asyncio
    async def test_reads_run_concurrently(self):
        started: list[str] = []
        release = asyncio.Event()

        class GatedStore(FakeInteractionStore):
            async def _gate(self, name):
                started.append(name)
                if len(started) == 4:
                    release.set()
                await asyncio.wait_for(release.wait(), timeout=1)

            async def fetch_mates(self, user_id):
                await self._gate("mates")
                return set()

            async def fetch_follows(self, user_id):
                await self._gate("follows")
                return set()

            async def fetch_interests(self, user_id):
                await self._gate("interests")
                return []

            async def fetch_recent_interactions(self, user_id, limit):
                await self._gate("interactions")
                return []

        # Would time out if the four reads were awaited one after another
        await UserContextResolver(GatedStore(), FakeContentStore()).resolve("u1")
        assert sorted(started) == ["follows", "interactions", "interests", "mates"]

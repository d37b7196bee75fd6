"""
Relevance scoring.

  score = strategy_weight
        + relationship boosts   (mate 50, follow 30, liked creator 20)
        + engagement            (2·likes + 3·comments + 4·shares)
        + interest match        (15 per hashtag in the user's interests)
        + own interactions      (+10 liked, −1000 hidden)
        + recency               (100·exp(−hours/48))
  clamped at 0.

Candidates that end at 0 are dropped; the rest are sorted by score
(ties keep arrival order) and truncated to the feed size.
"""
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from fiyofeed.engine.types import (
    ActionType,
    Candidate,
    ContentMetrics,
    ScoredCandidate,
    UserContext,
)

MATE_BOOST = 50
FOLLOW_BOOST = 30
LIKED_CREATOR_BOOST = 20

LIKE_WEIGHT = 2
COMMENT_WEIGHT = 3
SHARE_WEIGHT = 4
INTEREST_MATCH_WEIGHT = 15

LIKED_BOOST = 10
HIDDEN_PENALTY = 1000

RECENCY_SCALE = 100
RECENCY_DECAY_HOURS = 48  # e-folding time; half-life ≈ 33.3h

FEED_SIZE = 20

_NO_METRICS = ContentMetrics()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    # Naive timestamps from the store are UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class RelevanceScorer:
    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def score(
        self,
        candidate: Candidate,
        context: UserContext,
        metrics: dict[str, ContentMetrics],
        now: Optional[datetime] = None,
    ) -> float:
        now = now or self._clock()
        author = candidate.user_id
        item = metrics.get(candidate.id, _NO_METRICS)

        score = float(candidate.strategy_weight or 0)

        if author in context.mates:
            score += MATE_BOOST
        if author in context.follows:
            score += FOLLOW_BOOST
        if author in context.liked_creators:
            score += LIKED_CREATOR_BOOST

        score += item.likes_count * LIKE_WEIGHT
        score += item.comments_count * COMMENT_WEIGHT
        score += item.shares_count * SHARE_WEIGHT

        matches = set(item.hashtags) & set(context.interests)
        score += len(matches) * INTEREST_MATCH_WEIGHT

        if candidate.id in context.interacted(ActionType.LIKE.value):
            score += LIKED_BOOST
        if candidate.id in context.interacted(ActionType.HIDE.value):
            score -= HIDDEN_PENALTY

        # Rows dated in the future count as brand new
        hours = max(0.0, (now - _as_utc(candidate.created_at)).total_seconds() / 3600)
        score += RECENCY_SCALE * math.exp(-hours / RECENCY_DECAY_HOURS)

        return max(0.0, score)

    def rank(
        self,
        candidates: list[Candidate],
        context: UserContext,
        metrics: dict[str, ContentMetrics],
        limit: int = FEED_SIZE,
    ) -> list[ScoredCandidate]:
        now = self._clock()
        scored = [
            ScoredCandidate(candidate, self.score(candidate, context, metrics, now))
            for candidate in candidates
        ]
        kept = [item for item in scored if item.score > 0]
        kept.sort(key=lambda item: item.score, reverse=True)
        return kept[:limit]

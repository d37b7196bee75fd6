"""
Value objects shared by every stage of the feed pipeline.

  UserContext     : who the user knows and what they engaged with
  Strategy        : a named, weighted retrieval rule (tagged selector)
  ContentRow      : a row as returned by the content store
  Candidate       : a row tagged with the strategy that surfaced it
  ContentMetrics  : engagement counters + hashtags for one content item
  ScoredCandidate : Candidate + relevance score
  CachedFeed      : a ranked id list as stored in the feed cache
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping, Optional, Union

from fiyofeed.errors import InvalidContentType

ContentId = str
UserId = str
Tag = str


class ContentType(str, enum.Enum):
    POST = "post"
    CLIP = "clip"

    @property
    def table(self) -> str:
        return f"{self.value}s"

    @classmethod
    def parse(cls, value: "str | ContentType") -> "ContentType":
        """Accept 'post'/'clip' (or the plural table names); reject anything else."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalised = value.strip().lower()
            for member in cls:
                if normalised in (member.value, member.table):
                    return member
        raise InvalidContentType(value)


class ActionType(str, enum.Enum):
    LIKE = "like"
    HIDE = "hide"
    COMMENT = "comment"
    SHARE = "share"
    VIEW = "view"


class SortBy(str, enum.Enum):
    POPULAR = "popular"
    RECENT = "recent"


# ─────────────────────────── User context ────────────────────────────────

@dataclass(frozen=True)
class Interaction:
    content_id: ContentId
    content_type: ContentType
    action_type: str
    created_at: datetime


@dataclass(frozen=True)
class UserContext:
    mates: frozenset = frozenset()
    follows: frozenset = frozenset()
    interests: tuple = ()
    interactions_by_type: Mapping = field(default_factory=dict, hash=False)
    liked_creators: frozenset = frozenset()

    def __post_init__(self) -> None:
        grouped = {
            action: frozenset(ids) for action, ids in self.interactions_by_type.items()
        }
        object.__setattr__(self, "interactions_by_type", MappingProxyType(grouped))

    @property
    def network_ids(self) -> frozenset:
        return self.mates | self.follows

    def interacted(self, action_type: str) -> frozenset:
        return self.interactions_by_type.get(action_type, frozenset())


# ─────────────────────────── Strategies ──────────────────────────────────

@dataclass(frozen=True)
class ByAuthors:
    user_ids: frozenset


@dataclass(frozen=True)
class ByTags:
    tags: tuple


@dataclass(frozen=True)
class BySort:
    sort_by: SortBy = SortBy.RECENT


Selector = Union[ByAuthors, ByTags, BySort]


@dataclass(frozen=True)
class Strategy:
    name: str
    weight: float
    limit: int
    selector: Selector
    timeframe_days: int = 7

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.timeframe_days)


# ─────────────────────────── Content ─────────────────────────────────────

@dataclass(frozen=True)
class ContentRow:
    id: ContentId
    author_id: UserId
    created_at: datetime
    media_key: Optional[str] = None
    collabs: tuple = ()
    caption: Optional[str] = None
    description: Optional[str] = None
    hashtags: tuple = ()
    track: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0


@dataclass(frozen=True)
class ContentMetrics:
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    hashtags: tuple = ()


@dataclass(frozen=True)
class Candidate:
    id: ContentId
    user_id: UserId
    created_at: datetime
    strategy_weight: float
    strategy_name: str

    @classmethod
    def from_row(cls, row: ContentRow, strategy: Strategy) -> "Candidate":
        return cls(
            id=row.id,
            user_id=row.author_id,
            created_at=row.created_at,
            strategy_weight=strategy.weight,
            strategy_name=strategy.name,
        )


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float

    @property
    def id(self) -> ContentId:
        return self.candidate.id


# ─────────────────────────── Cache ───────────────────────────────────────

@dataclass(frozen=True)
class CachedFeed:
    content_ids: tuple
    # None for bootstrap lists, which are served once but never "fresh"
    computed_at: Optional[datetime] = None

    def is_usable(self, now: datetime, ttl: timedelta, min_items: int) -> bool:
        if len(self.content_ids) <= min_items or self.computed_at is None:
            return False
        return now - self.computed_at < ttl

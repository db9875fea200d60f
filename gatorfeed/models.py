"""Records stored in and returned by the database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable
from uuid import UUID


def _render(value: object) -> str:
    return "<nil>" if value is None else str(value)


def _render_fields(pairs: Iterable[tuple[str, object]]) -> str:
    return "{" + " ".join(f"{label}:{_render(value)}" for label, value in pairs) + "}"


@dataclass(frozen=True)
class User:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: UUID
    last_fetched_at: datetime | None = None

    def __str__(self) -> str:
        return _render_fields(
            [
                ("ID", self.id),
                ("CreatedAt", self.created_at),
                ("UpdatedAt", self.updated_at),
                ("Name", self.name),
                ("Url", self.url),
                ("UserID", self.user_id),
                ("LastFetchedAt", self.last_fetched_at),
            ]
        )


@dataclass(frozen=True)
class FeedFollow:
    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID


@dataclass(frozen=True)
class FeedFollowRow:
    """A follow joined with the names of its feed and user."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID
    feed_name: str
    user_name: str


@dataclass(frozen=True)
class FeedSummary:
    """A feed without its fetch bookkeeping."""

    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime
    url: str
    user_id: UUID


@dataclass(frozen=True)
class FeedView:
    """A feed together with the name of the user who added it."""

    id: UUID
    name: str
    url: str
    user_name: str


@dataclass(frozen=True)
class Post:
    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime
    feed_id: UUID

    def __str__(self) -> str:
        return _render_fields(
            [
                ("ID", self.id),
                ("CreatedAt", self.created_at),
                ("UpdatedAt", self.updated_at),
                ("Title", self.title),
                ("Url", self.url),
                ("Description", self.description),
                ("PublishedAt", self.published_at),
                ("FeedID", self.feed_id),
            ]
        )
"""Storage for users, feeds, follows and posts backed by SQLite."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Sequence
from uuid import UUID

from .models import Feed, FeedFollowRow, FeedSummary, FeedView, Post, User


class DatabaseError(Exception):
    """A query could not be carried out."""


class NotFoundError(DatabaseError):
    """A query that must return one row returned none."""


class DuplicateError(DatabaseError):
    """A row would break a uniqueness constraint."""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT NOT NULL,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"


def _to_db_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds")


def _from_db_time(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


def _user(row: Sequence) -> User:
    return User(UUID(row[0]), _from_db_time(row[1]), _from_db_time(row[2]), row[3])


def _feed(row: Sequence) -> Feed:
    return Feed(
        id=UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        name=row[3],
        url=row[4],
        user_id=UUID(row[5]),
        last_fetched_at=_from_db_time(row[6]),
    )


def _post(row: Sequence) -> Post:
    return Post(
        id=UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        title=row[3],
        url=row[4],
        description=row[5],
        published_at=_from_db_time(row[6]),
        feed_id=UUID(row[7]),
    )


def _follow_row(row: Sequence) -> FeedFollowRow:
    return FeedFollowRow(
        id=UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        user_id=UUID(row[3]),
        feed_id=UUID(row[4]),
        feed_name=row[5],
        user_name=row[6],
    )


class Queries:
    """The set of queries the application runs against its database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        # Statements commit on their own unless run inside transaction().
        connection.isolation_level = None
        self._conn = connection
        self._in_transaction = False
        self._execute("PRAGMA foreign_keys = ON")

    @staticmethod
    @contextmanager
    def _errors() -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateError(f"duplicate key value violates unique constraint: {exc}") from exc
            raise DatabaseError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _execute(self, sql: str, params: Sequence = ()) -> list:
        with self._errors():
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _one(self, sql: str, params: Sequence, what: str) -> Sequence:
        rows = self._execute(sql, params)
        if not rows:
            raise NotFoundError(f"no {what} found")
        return rows[0]

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with self._errors():
            self._conn.executescript(_SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator["Queries"]:
        """Run the enclosed queries atomically; roll back if the block raises."""
        if self._in_transaction:
            raise DatabaseError("a transaction is already in progress")
        self._execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            try:
                self._execute("COMMIT")
            except DatabaseError:
                self._conn.execute("ROLLBACK")
                raise
        finally:
            self._in_transaction = False

    def close(self) -> None:
        self._conn.close()

    # users

    def create_user(self, user_id: UUID, created_at: datetime, updated_at: datetime, name: str) -> User:
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(user_id), _to_db_time(created_at), _to_db_time(updated_at), name),
        )
        row = self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE id = ?",
            (str(user_id),),
            "user",
        )
        return _user(row)

    def get_user(self, name: str) -> User:
        row = self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE name = ?",
            (name,),
            f"user named {name!r}",
        )
        return _user(row)

    def get_users(self) -> list[User]:
        rows = self._execute("SELECT id, created_at, updated_at, name FROM users")
        return [_user(row) for row in rows]

    def delete_users(self) -> None:
        self._execute("DELETE FROM users")

    # feeds

    def create_feed(
        self,
        feed_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: UUID,
    ) -> Feed:
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id, last_fetched_at)"
            " VALUES (?, ?, ?, ?, ?, ?, NULL)",
            (
                str(feed_id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                name,
                url,
                str(user_id),
            ),
        )
        row = self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed_id),), "feed")
        return _feed(row)

    def get_feed_by_url(self, url: str) -> FeedSummary:
        row = self._one(
            "SELECT id, name, created_at, updated_at, url, user_id FROM feeds WHERE url = ?",
            (url,),
            f"feed with url {url!r}",
        )
        return FeedSummary(
            id=UUID(row[0]),
            name=row[1],
            created_at=_from_db_time(row[2]),
            updated_at=_from_db_time(row[3]),
            url=row[4],
            user_id=UUID(row[5]),
        )

    def get_feeds_view(self) -> list[FeedView]:
        rows = self._execute(
            "SELECT f.id, f.name, f.url, u.name FROM feeds f"
            " INNER JOIN users u ON f.user_id = u.id"
        )
        return [FeedView(UUID(row[0]), row[1], row[2], row[3]) for row in rows]

    def get_next_feed_to_fetch(self) -> Feed:
        # SQLite sorts NULLs first in ascending order.
        row = self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds ORDER BY last_fetched_at ASC LIMIT 1",
            (),
            "feed to fetch",
        )
        return _feed(row)

    def mark_feed_fetched(self, feed_id: UUID) -> None:
        now = _to_db_time(datetime.now(timezone.utc))
        self._execute(
            "UPDATE feeds SET updated_at = ?, last_fetched_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )

    # follows

    def create_feed_follow(
        self,
        follow_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: UUID,
        feed_id: UUID,
    ) -> FeedFollowRow:
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                str(follow_id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                str(user_id),
                str(feed_id),
            ),
        )
        row = self._one(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id,"
            " f.name, u.name FROM feed_follows ff"
            " INNER JOIN users u ON ff.user_id = u.id"
            " INNER JOIN feeds f ON ff.feed_id = f.id"
            " WHERE ff.id = ?",
            (str(follow_id),),
            "feed follow",
        )
        return _follow_row(row)

    def delete_feed_follow(self, user_id: UUID, feed_id: UUID) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    def get_feed_follows_for_user(self, name: str) -> list[FeedFollowRow]:
        rows = self._execute(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id,"
            " f.name, u.name FROM feed_follows ff"
            " INNER JOIN users u ON ff.user_id = u.id"
            " INNER JOIN feeds f ON ff.feed_id = f.id"
            " WHERE u.name = ?",
            (name,),
        )
        return [_follow_row(row) for row in rows]

    # posts

    def create_post(
        self,
        post_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime,
        feed_id: UUID,
    ) -> Post:
        self._execute(
            f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(post_id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                title,
                url,
                description,
                _to_db_time(published_at),
                str(feed_id),
            ),
        )
        row = self._one(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(post_id),), "post")
        return _post(row)

    def get_posts_for_user(self, user_id: UUID, limit: int) -> list[Post]:
        """Return the newest posts of the feeds ``user_id`` follows, at most ``limit``."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        columns = ", ".join(f"p.{name.strip()}" for name in _POST_COLUMNS.split(","))
        rows = self._execute(
            f"SELECT {columns} FROM posts p"
            " INNER JOIN feeds f ON p.feed_id = f.id"
            " INNER JOIN feed_follows ff ON f.id = ff.feed_id"
            " WHERE ff.user_id = ?"
            " ORDER BY p.published_at DESC"
            " LIMIT ?",
            (str(user_id), limit),
        )
        return [_post(row) for row in rows]


def connect(connection_string: str) -> Queries:
    """Open the SQLite database at ``connection_string`` and make sure its tables exist."""
    try:
        connection = sqlite3.connect(connection_string)
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    queries = Queries(connection)
    queries.create_schema()
    return queries
"""Storage of users, feeds, follows and posts in SQLite."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from gator.models import Feed, FeedFollow, Post, User

T = TypeVar("T")


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that returns one row found none."""


class DuplicateError(DatabaseError):
    """An insert broke a uniqueness constraint."""


_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        name TEXT NOT NULL UNIQUE
    )""",
    """CREATE TABLE IF NOT EXISTS feeds (
        id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        name TEXT NOT NULL,
        url TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        last_fetched_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS feed_follows (
        id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE,
        UNIQUE (user_id, feed_id)
    )""",
    """CREATE TABLE IF NOT EXISTS posts (
        id TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        title TEXT NOT NULL,
        url TEXT NOT NULL UNIQUE,
        description TEXT,
        published_at TEXT NOT NULL,
        feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE
    )""",
)

_USER_COLUMNS = "users.id, users.created_at, users.updated_at, users.name"
_FEED_COLUMNS = (
    "feeds.id, feeds.created_at, feeds.updated_at, feeds.name, feeds.url, "
    "feeds.user_id, feeds.last_fetched_at"
)
_POST_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
    "posts.description, posts.published_at, posts.feed_id"
)
_FOLLOW_SELECT = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN feeds ON feed_follows.feed_id = feeds.id
INNER JOIN users ON feed_follows.user_id = users.id
"""


def _to_db_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds")


def _from_db_time(text: Optional[str]) -> Optional[datetime]:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: Sequence) -> User:
    return User(uuid.UUID(row[0]), _from_db_time(row[1]), _from_db_time(row[2]), row[3])


def _feed(row: Sequence) -> Feed:
    return Feed(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        name=row[3],
        url=row[4],
        user_id=uuid.UUID(row[5]),
        last_fetched_at=_from_db_time(row[6]),
    )


def _post(row: Sequence) -> Post:
    return Post(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        title=row[3],
        url=row[4],
        description=row[5],
        published_at=_from_db_time(row[6]),
        feed_id=uuid.UUID(row[7]),
    )


def _follow(row: Sequence) -> FeedFollow:
    return FeedFollow(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        user_id=uuid.UUID(row[3]),
        feed_id=uuid.UUID(row[4]),
        feed_name=row[5],
        user_name=row[6],
    )


def _database_path(url: str) -> str:
    if "://" not in url:
        return url or ":memory:"
    scheme, rest = url.split("://", 1)
    if scheme != "sqlite":
        raise DatabaseError(f"unsupported database url: {url}")
    path = rest[1:] if rest.startswith("/") else rest
    return path or ":memory:"


def connect(url: str) -> "Queries":
    """Open the database named by a sqlite URL or path and make sure its tables exist."""
    try:
        connection = sqlite3.connect(_database_path(url))
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    queries = Queries(connection)
    queries.create_schema()
    return queries


class Queries:
    """The queries the application runs against its database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._depth = 0
        self._execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> "Queries":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _execute(self, sql: str, params: Sequence = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateError(
                    f"duplicate key value violates unique constraint: {exc}"
                ) from exc
            raise DatabaseError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _write(self, sql: str, params: Sequence = ()) -> None:
        try:
            self._execute(sql, params)
        except DatabaseError:
            if self._depth == 0 and self._conn.in_transaction:
                self._conn.rollback()
            raise
        if self._depth == 0:
            self._conn.commit()

    def _one(self, sql: str, params: Sequence, convert: Callable[[Sequence], T]) -> T:
        row = self._execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return convert(row)

    def _many(self, sql: str, params: Sequence, convert: Callable[[Sequence], T]) -> List[T]:
        return [convert(row) for row in self._execute(sql, params).fetchall()]

    def create_schema(self) -> None:
        """Create the tables if they are missing."""
        for statement in _SCHEMA:
            self._write(statement)

    @contextmanager
    def transaction(self) -> Iterator["Queries"]:
        """Run the queries inside the block as one transaction."""
        outer = self._depth == 0
        if outer and not self._conn.in_transaction:
            self._execute("BEGIN")
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if outer:
                self._conn.rollback()
            raise
        self._depth -= 1
        if outer:
            self._conn.commit()

    def close(self) -> None:
        """Close the connection."""
        self._conn.close()

    # users

    def create_user(self, id: uuid.UUID, created_at: datetime, updated_at: datetime, name: str) -> User:
        self._write(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _to_db_time(created_at), _to_db_time(updated_at), name),
        )
        return self.get_user_by_id(id)

    def delete_users(self) -> None:
        self._write("DELETE FROM users")

    def get_user(self, name: str) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user)

    def get_user_by_id(self, id: uuid.UUID) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),), _user)

    def get_users(self) -> List[User]:
        return self._many(f"SELECT {_USER_COLUMNS} FROM users ORDER BY rowid", (), _user)

    # feeds

    def create_feed(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: uuid.UUID,
    ) -> Feed:
        self._write(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _to_db_time(created_at), _to_db_time(updated_at), name, url, str(user_id)),
        )
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),), _feed)

    def delete_feeds(self) -> None:
        self._write("DELETE FROM feeds")

    def get_feed(self, name: str) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE name = ? ORDER BY rowid LIMIT 1",
            (name,),
            _feed,
        )

    def get_feed_by_url(self, url: str) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feeds(self) -> List[Feed]:
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds ORDER BY rowid", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        """The feed fetched longest ago, feeds never fetched first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC, rowid LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, id: uuid.UUID) -> None:
        now = _to_db_time(datetime.now(timezone.utc))
        self._write(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(id)),
        )

    # feed follows

    def create_feed_follow(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: uuid.UUID,
        feed_id: uuid.UUID,
    ) -> FeedFollow:
        self._write(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(id), _to_db_time(created_at), _to_db_time(updated_at), str(user_id), str(feed_id)),
        )
        return self._one(_FOLLOW_SELECT + "WHERE feed_follows.id = ?", (str(id),), _follow)

    def delete_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._write(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> List[FeedFollow]:
        return self._many(
            _FOLLOW_SELECT + "WHERE feed_follows.user_id = ? ORDER BY feed_follows.rowid",
            (str(user_id),),
            _follow,
        )

    # posts

    def create_post(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: Optional[str],
        published_at: datetime,
        feed_id: uuid.UUID,
    ) -> Post:
        self._write(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                title,
                url,
                description,
                _to_db_time(published_at),
                str(feed_id),
            ),
        )
        return self._one(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(id),), _post)

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> List[Post]:
        """Posts of the feeds the user follows, newest first."""
        limit = int(limit)
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS} FROM posts "
            "INNER JOIN feed_follows ON posts.feed_id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at DESC, posts.rowid LIMIT ?",
            (str(user_id), limit),
            _post,
        )
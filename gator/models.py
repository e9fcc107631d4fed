"""Records stored in the database and items read from RSS documents."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class User:
    """A registered user."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    """An RSS feed added by a user."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class Post:
    """A post collected from a feed."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: Optional[str]
    published_at: datetime
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollow:
    """A user following a feed, with the names of both joined in."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID
    feed_name: str
    user_name: str


@dataclass(frozen=True)
class RSSItem:
    """One item of an RSS channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass(frozen=True)
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: List[RSSItem] = field(default_factory=list)
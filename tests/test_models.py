import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gator.models import Feed, FeedFollow, Post, RSSFeed, RSSItem, User

WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_rss_item_defaults_are_empty_strings():
    item = RSSItem()
    assert (item.title, item.link, item.description, item.pub_date) == ("", "", "", "")


def test_rss_feed_defaults_to_no_items():
    feed = RSSFeed()
    assert feed.items == []
    assert feed.title == ""


def test_rss_feed_item_lists_are_not_shared():
    first = RSSFeed()
    second = RSSFeed()
    first.items.append(RSSItem(title="one"))
    assert second.items == []
    assert len(first.items) == 1


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(uuid.uuid4(), WHEN, WHEN, "blog", "http://example.com/rss", uuid.uuid4())
    assert feed.last_fetched_at is None


def test_user_is_immutable():
    user = User(uuid.uuid4(), WHEN, WHEN, "alice")
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "bob"
    assert user.name == "alice"


def test_records_compare_by_value():
    user_id = uuid.uuid4()
    assert User(user_id, WHEN, WHEN, "alice") == User(user_id, WHEN, WHEN, "alice")
    assert User(user_id, WHEN, WHEN, "alice") != User(user_id, WHEN, WHEN, "bob")


def test_replace_builds_new_record():
    post = Post(uuid.uuid4(), WHEN, WHEN, "title", "http://example.com/a", None, WHEN, uuid.uuid4())
    changed = dataclasses.replace(post, description="text")
    assert changed.description == "text"
    assert post.description is None
    assert changed.id == post.id


def test_feed_follow_holds_joined_names():
    follow = FeedFollow(uuid.uuid4(), WHEN, WHEN, uuid.uuid4(), uuid.uuid4(), "blog", "alice")
    assert (follow.feed_name, follow.user_name) == ("blog", "alice")
"""The commands of the feed aggregator and the registry that dispatches them."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List

from gator import rss
from gator.config import Config
from gator.database import DatabaseError, DuplicateError, Queries
from gator.models import User

Handler = Callable[["State", "Command"], None]


class CommandError(Exception):
    """A command failed."""


@dataclass
class State:
    """What every command works with."""

    config: Config
    db: Queries


@dataclass
class Command:
    """A command name and its arguments."""

    name: str
    args: List[str] = field(default_factory=list)


class Commands:
    """Named command handlers."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, command: Command) -> None:
        try:
            handler = self.handlers[command.name]
        except KeyError:
            raise CommandError(f"unknown command: {command.name}") from None
        handler(state, command)


_UNITS = {
    "ns": Decimal(1),
    "us": Decimal(1000),
    "µs": Decimal(1000),
    "μs": Decimal(1000),
    "ms": Decimal(1000000),
    "s": Decimal(10) ** 9,
    "m": 60 * Decimal(10) ** 9,
    "h": 3600 * Decimal(10) ** 9,
}
_PART = re.compile(r"([0-9]*\.?[0-9]*)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1m30s`` or ``500ms``."""
    error = ValueError(f'time: invalid duration "{text}"')
    body = text
    sign = 1
    if body[:1] in "+-" and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise error
    total = Decimal(0)
    pos = 0
    while pos < len(body):
        match = _PART.match(body, pos)
        if not match or match.group(1) in ("", "."):
            raise error
        try:
            total += Decimal(match.group(1)) * _UNITS[match.group(2)]
        except InvalidOperation:
            raise error from None
        pos = match.end()
    return sign * timedelta(microseconds=float(total / 1000))


def _trim(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_duration(duration: timedelta) -> str:
    micros = duration // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim(Decimal(micros) / 1000)}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{_trim(Decimal(rest) / 1_000_000)}s"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def login_handler(state: State, command: Command) -> None:
    if not command.args:
        raise CommandError("missing username")
    username = command.args[0]
    try:
        state.db.get_user(username)
    except DatabaseError as exc:
        raise CommandError(f'user "{username}" does not exist: {exc}') from exc
    state.config.set_user(username)
    print("User has been set")


def register_handler(state: State, command: Command) -> None:
    if not command.args:
        raise CommandError("missing username")
    username = command.args[0]
    now = _now()
    state.db.create_user(uuid.uuid4(), now, now, username)
    state.config.set_user(username)
    print("User has been created")


def reset_handler(state: State, command: Command) -> None:
    try:
        state.db.delete_users()
    except DatabaseError as exc:
        raise CommandError(f"failed to delete users: {exc}") from exc
    print("All users have been deleted")


def users_handler(state: State, command: Command) -> None:
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"failed to get users: {exc}") from exc
    for user in users:
        if user.name == state.config.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")


def agg_handler(state: State, command: Command) -> None:
    """Scrape feeds now and then once per interval, forever."""
    if not command.args:
        raise CommandError("usage: agg <time_between_reqs>")
    try:
        interval = parse_duration(command.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("non-positive interval for ticker")
    print(f"Collecting feeds every {_format_duration(interval)}")
    while True:
        try:
            scrape_feeds(state)
        except CommandError as exc:
            print(f"Error scraping feeds: {exc}")
        time.sleep(interval.total_seconds())


def scrape_feeds(state: State) -> None:
    """Fetch the feed due next and store its posts."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get next feed to fetch: {exc}") from exc
    try:
        state.db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't mark feed as fetched: {exc}") from exc
    try:
        document = rss.fetch_feed(feed.url)
    except (OSError, ValueError) as exc:
        raise CommandError(f"couldn't fetch feed {feed.name}: {exc}") from exc

    print(f"Feed {feed.name} collected, {len(document.items)} posts found")
    for item in document.items:
        try:
            published_at = rss.parse_date(item.pub_date)
        except ValueError as exc:
            print(f"couldn't parse date {item.pub_date}: {exc}")
            continue
        now = _now()
        try:
            state.db.create_post(
                uuid.uuid4(),
                now,
                now,
                item.title,
                item.link,
                item.description or None,
                published_at,
                feed.id,
            )
        except DuplicateError:
            continue
        except DatabaseError as exc:
            print(f"couldn't create post: {exc}")


def feeds_handler(state: State, command: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"failed to get get feeds: {exc}") from exc
    if not feeds:
        print("No feeds found")
        return
    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except DatabaseError as exc:
            raise CommandError(f"failed to get user for feed {feed.name}: {exc}") from exc
        print(f"* Name: {feed.name}")
        print(f"  URL: {feed.url}")
        print(f"  User: {user.name}")
        print()


def add_feed_handler(state: State, command: Command, user: User) -> None:
    if len(command.args) < 2:
        raise CommandError("usage: addfeed <name> <url>")
    name, url = command.args[0], command.args[1]
    now = _now()
    try:
        feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to create feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to create feed follow: {exc}") from exc
    print("Feed created successfully:")
    print(f"* Name: {feed.name}")
    print(f"* URL: {feed.url}")
    print(f"* User: {user.name}")
    print(f"\n{follow.user_name} is now following {follow.feed_name}")


def follow_handler(state: State, command: Command, user: User) -> None:
    if not command.args:
        raise CommandError("usage: follow <url>")
    try:
        feed = state.db.get_feed_by_url(command.args[0])
    except DatabaseError as exc:
        raise CommandError(f"failed to get feed: {exc}") from exc
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to create feed follow: {exc}") from exc
    print(f"{follow.user_name} is now following {follow.feed_name}")


def unfollow_handler(state: State, command: Command, user: User) -> None:
    if not command.args:
        raise CommandError("usage: unfollow <url>")
    try:
        feed = state.db.get_feed_by_url(command.args[0])
    except DatabaseError as exc:
        raise CommandError(f"failed to get feed: {exc}") from exc
    try:
        state.db.delete_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to unfollow feed: {exc}") from exc
    print(f"{user.name} has unfollowed {feed.name}")


def following_handler(state: State, command: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to get feed follows: {exc}") from exc
    if not follows:
        print("Not following any feeds")
        return
    print(f"Feeds {user.name} is following:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def browse_handler(state: State, command: Command, user: User) -> None:
    limit = 2
    if command.args:
        try:
            limit = int(command.args[0])
        except ValueError as exc:
            raise CommandError(f"invalid limit: {exc}") from exc
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts: {exc}") from exc
    if not posts:
        print("No posts found. Follow some feeds first!")
        return
    print(f"Found {len(posts)} posts for user {user.name}:")
    print()
    for post in posts:
        print(f"Title: {post.title}")
        print(f"URL: {post.url}")
        if post.description is not None:
            description = post.description
            if len(description) > 200:
                description = description[:200] + "..."
            print(f"Description: {description}")
        print(f"Published: {post.published_at.strftime('%Y-%m-%d %H:%M:%S')}")
        print("=====================================")
from datetime import timedelta

import pytest

from gator import commands
from gator.commands import Command, CommandError, State
from gator.config import Config, read
from gator.database import connect

FEED = b"""<rss><channel><title>T</title>
<item><title>Old</title><link>https://example.com/old</link>
<pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>New</title><link>https://example.com/new</link><description>fresh</description>
<pubDate>Tue, 03 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>Bad</title><link>https://example.com/bad</link><pubDate>never</pubDate></item>
</channel></rss>"""


@pytest.fixture
def state(tmp_path):
    cfg = Config(db_url=":memory:", path=tmp_path / "cfg.json")
    db = connect(":memory:")
    yield State(cfg, db)
    db.close()


def test_run_unknown(state):
    with pytest.raises(CommandError, match="unknown command: nope"):
        commands.Commands().run(state, Command("nope"))


def test_register_dispatch(state):
    seen = []
    cmds = commands.Commands()
    cmds.register("x", lambda s, c: seen.append(c.args))
    cmds.run(state, Command("x", ["a"]))
    assert seen == [["a"]]


def test_register_and_login(state, capsys):
    commands.register_handler(state, Command("register", ["alice"]))
    assert read(state.config.path).current_user_name == "alice"
    commands.register_handler(state, Command("register", ["bob"]))
    commands.login_handler(state, Command("login", ["alice"]))
    assert state.config.current_user_name == "alice"
    commands.users_handler(state, Command("users"))
    assert "* alice (current)\n* bob\n" in capsys.readouterr().out


def test_login_unknown_user(state):
    with pytest.raises(CommandError, match="does not exist"):
        commands.login_handler(state, Command("login", ["ghost"]))


def test_missing_username(state):
    with pytest.raises(CommandError, match="missing username"):
        commands.register_handler(state, Command("register"))


def test_follow_flow(state, capsys):
    commands.register_handler(state, Command("register", ["alice"]))
    user = state.db.get_user("alice")
    commands.add_feed_handler(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    assert "alice is now following News" in capsys.readouterr().out
    commands.unfollow_handler(state, Command("unfollow", ["https://example.com/rss"]), user)
    assert state.db.get_feed_follows_for_user(user.id) == []
    commands.follow_handler(state, Command("follow", ["https://example.com/rss"]), user)
    commands.following_handler(state, Command("following"), user)
    assert "* News" in capsys.readouterr().out


def test_scrape_and_browse(state, tmp_path, capsys):
    path = tmp_path / "feed.xml"
    path.write_bytes(FEED)
    commands.register_handler(state, Command("register", ["alice"]))
    user = state.db.get_user("alice")
    commands.add_feed_handler(state, Command("addfeed", ["F", path.as_uri()]), user)
    commands.scrape_feeds(state)
    commands.scrape_feeds(state)
    posts = state.db.get_posts_for_user(user.id, 10)
    assert [p.title for p in posts] == ["New", "Old"]
    assert posts[1].description is None
    assert state.db.get_feed("F").last_fetched_at is not None
    capsys.readouterr()
    commands.browse_handler(state, Command("browse", ["1"]), user)
    out = capsys.readouterr().out
    assert "Title: New" in out and "Title: Old" not in out


def test_browse_invalid_limit(state):
    commands.register_handler(state, Command("register", ["alice"]))
    user = state.db.get_user("alice")
    with pytest.raises(CommandError, match="invalid limit"):
        commands.browse_handler(state, Command("browse", ["lots"]), user)


def test_scrape_without_feeds(state):
    with pytest.raises(CommandError, match="couldn't get next feed"):
        commands.scrape_feeds(state)


def test_parse_duration():
    assert commands.parse_duration("1m30s") == timedelta(seconds=90)
    assert commands.parse_duration("500ms") == timedelta(milliseconds=500)
    assert commands.parse_duration("0") == timedelta(0)
    with pytest.raises(ValueError):
        commands.parse_duration("10")


def test_agg_errors(state):
    with pytest.raises(CommandError, match="usage: agg"):
        commands.agg_handler(state, Command("agg"))
    with pytest.raises(CommandError, match="invalid duration"):
        commands.agg_handler(state, Command("agg", ["soon"]))
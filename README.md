# gator

`gator` is a small command-line RSS aggregator. It keeps track of users,
the feeds they add and follow, and the posts collected from those feeds,
all stored in a SQLite database.

## Installation

```
pip install .
```

There are no dependencies beyond the Python standard library. Python 3.10
or later is required.

## Configuration

`gator` reads its settings from `~/.gatorconfig.json`. The file must exist
before any command is run; create it by hand, for example:

```json
{"db_url": "gator.db", "current_user_name": ""}
```

- `db_url` names the SQLite database: either a plain file path, or a URL of
  the form `sqlite:///path/to/gator.db`. An empty value, or `sqlite://` with
  no path, opens an in-memory database. Any other URL scheme is rejected.
  The tables are created when the database is first opened.
- `current_user_name` is the logged-in user. `gator` rewrites the file
  itself when you run `login` or `register`.

## Commands

```
gator register <name>         create a user and log in as them
gator login <name>            log in as an existing user
gator users                   list users; the current one is marked "(current)"
gator reset                   delete all users (their feeds, follows and posts go with them)
gator addfeed <name> <url>    add a feed and follow it (must be logged in)
gator feeds                   list all feeds and who added them
gator follow <url>            follow an existing feed (must be logged in)
gator unfollow <url>          stop following a feed (must be logged in)
gator following               list the feeds you follow (must be logged in)
gator agg <interval>          fetch feeds forever, one every interval
gator browse [limit]          show the newest posts from feeds you follow (default 2)
```

The interval for `agg` is a duration such as `500ms`, `30s`, `1m` or
`1h30m`; it must be positive. `agg` fetches one feed straight away and then
one more after each interval, until it is interrupted. Each time it picks
the feed that has gone longest without being fetched, feeds never fetched
first. Items whose publication date cannot be parsed are reported and
skipped, and posts whose URL is already stored are skipped silently.

`browse` lists posts newest first and cuts descriptions longer than 200
characters down to 200 followed by `...`.

An unknown command, missing arguments, a missing configuration file or a
failing database operation ends the program with a message on standard
error and exit status 1.

## Example session

```
gator register alice
gator addfeed "Example Blog" https://example.com/feed.xml
gator agg 1m
gator browse 5
```

## Using it as a library

- `gator.config`: `Config` (with `set_user`), `read`, `write` and
  `config_path` for the configuration file.
- `gator.rss`: `parse_feed` turns RSS bytes into an `RSSFeed`,
  `fetch_feed` downloads and parses a feed, `parse_date` reads the date
  formats common in feeds (RFC 1123 and RFC 822, with numeric offsets or
  zone names, ISO 8601, and `YYYY-MM-DD HH:MM:SS`).
- `gator.models`: the records `User`, `Feed`, `Post`, `FeedFollow`,
  `RSSFeed` and `RSSItem`.
- `gator.database`: `connect` returns a `Queries` object with methods for
  users, feeds, follows and posts, a `transaction()` context manager, and
  `close()`. Failures raise `DatabaseError`, with `NotFoundError` when a
  single row is missing and `DuplicateError` on a uniqueness violation.
- `gator.commands`: the command handlers, the `Commands` registry,
  `State`, `Command`, `CommandError`, `scrape_feeds` and `parse_duration`.
- `gator.cli`: `build_commands`, `middleware_logged_in` and `main`.

## What it does not do

Only SQLite is supported as storage; there is no support for other
database servers. There are no commands to remove a single feed or user,
and `agg` has no way to stop other than interrupting it.
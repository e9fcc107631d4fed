from datetime import datetime, timedelta, timezone

import pytest

from gator import rss

SAMPLE = b"""<?xml version="1.0"?>
<rss version="2.0"><channel>
<title>News &amp;amp; Views</title>
<link>https://example.com/</link>
<description>All the news</description>
<item><title>First &amp;lt;post&amp;gt;</title><link>https://example.com/1</link>
<description>one</description><pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>Second</title><link>https://example.com/2</link></item>
</channel></rss>"""


def test_parse_feed():
    feed = rss.parse_feed(SAMPLE)
    assert feed.title == "News & Views"
    assert feed.link == "https://example.com/"
    assert [i.link for i in feed.items] == ["https://example.com/1", "https://example.com/2"]
    assert feed.items[0].title == "First <post>"
    assert feed.items[1].description == ""


def test_parse_feed_invalid():
    with pytest.raises(ValueError):
        rss.parse_feed(b"<rss><channel>")


def test_fetch_feed_from_file(tmp_path):
    path = tmp_path / "feed.xml"
    path.write_bytes(SAMPLE)
    feed = rss.fetch_feed(path.as_uri())
    assert feed == rss.parse_feed(SAMPLE)


def test_parse_date_rfc1123z():
    expected = datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7)))
    assert rss.parse_date("Mon, 02 Jan 2006 15:04:05 -0700") == expected


def test_parse_date_formats_agree():
    utc = rss.parse_date("2006-01-02T15:04:05Z")
    assert rss.parse_date("Mon, 02 Jan 2006 15:04:05 GMT") == utc
    assert rss.parse_date("2006-01-02 15:04:05") == utc
    assert rss.parse_date("02 Jan 06 15:04 +0000") == utc.replace(second=0)


def test_parse_date_invalid():
    with pytest.raises(ValueError, match="couldn't parse date"):
        rss.parse_date("yesterday")
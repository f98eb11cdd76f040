from datetime import datetime, timedelta, timezone

import pytest

from storyscope.utils.parsing import (
    clean_html_text,
    format_duration,
    format_time_ago,
    keyword_sentiment,
    parse_duration,
    parse_view_count,
    word_count,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1.2M views", 1_200_000),
        ("15K views", 15_000),
        ("842 views", 842),
        ("1,234,567 views", 1_234_567),
        ("2.5B", 2_500_000_000),
        ("No views", 0),
        (None, 0),
        (1234, 1234),
    ],
)
def test_parse_view_count(value, expected):
    assert parse_view_count(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("10:30", 630),
        ("1:05:20", 3920),
        ("45", 45),
        ("PT15M33S", 933),
        ("PT1H", 3600),
        ("LIVE", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_format_duration():
    assert format_duration(630) == "10:30"
    assert format_duration(3920) == "1:05:20"
    assert format_duration(-1) == "0:00"


def test_clean_html_text_and_word_count():
    assert clean_html_text("  Tom &amp; Jerry  ") == "Tom & Jerry"
    assert clean_html_text(None) == ""
    assert word_count("one  two\nthree") == 3
    assert word_count("   ") == 0


def test_keyword_sentiment():
    assert keyword_sentiment("I love this great video") == "positive"
    assert keyword_sentiment("worst and awful") == "negative"
    assert keyword_sentiment("just a video") == "neutral"


def test_format_time_ago():
    now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    assert format_time_ago(now - timedelta(days=3), now) == "3 days ago"
    assert format_time_ago(now - timedelta(hours=5), now) == "5 hours ago"
    assert format_time_ago(now - timedelta(minutes=2), now) == "2 minutes ago"
    assert format_time_ago(now, now) == "just now"
    assert format_time_ago(datetime(2024, 5, 9, 12, 0), now) == "1 days ago"

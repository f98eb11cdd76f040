from __future__ import annotations

import argparse
import json
from argparse import Namespace

import pandas as pd
import pytest

import storyscope.cli.commands.analyze as analyze
from storyscope import config
from storyscope.models.content import ContentItem
from tests.helpers.llm_fakes import FakeOrchestrator, FakeScraper


def _items():
    return [
        ContentItem(
            video_id="abcdefghijk",
            title="Ghost Lights",
            channel_name="Night Tales",
            view_count="2K views",
        ),
        ContentItem(
            video_id="lmnopqrstuv",
            title="Haunted Mill",
            channel_name="Night Tales",
            view_count="4K views",
        ),
    ]


@pytest.fixture
def fake_pipeline(monkeypatch):
    scrapers = []

    def fake_create_scraper(source):
        scraper = FakeScraper(_items())
        scrapers.append((source, scraper))
        return scraper

    monkeypatch.setattr(analyze, "create_scraper", fake_create_scraper)
    monkeypatch.setattr(analyze, "OrchestrationManager", lambda: FakeOrchestrator(summary="Spooky week"))
    monkeypatch.setattr(config, "PIPELINE_BATCH_DELAY", 0)
    monkeypatch.setattr(config, "PIPELINE_STORYBOARD_DELAY", 0)
    return scrapers


def _args(**overrides):
    values = dict(
        prompt="find 5 videos about ghost stories",
        source="youtube",
        max_results=None,
        output=None,
        as_json=False,
    )
    values.update(overrides)
    return Namespace(**values)


def test_add_analyze_parser_defaults():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command")
    analyze.add_analyze_parser(subparsers)

    args = parser.parse_args(["analyze", "find ghosts", "--source", "reddit", "--json"])

    assert args.prompt == "find ghosts"
    assert args.source == "reddit"
    assert args.max_results is None
    assert args.as_json is True
    assert args.func is analyze.handle_analyze_command


def test_add_analyze_parser_rejects_unknown_source():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command")
    analyze.add_analyze_parser(subparsers)

    with pytest.raises(SystemExit):
        parser.parse_args(["analyze", "find ghosts", "--source", "tiktok"])


def test_handle_analyze_prints_summary(fake_pipeline, capsys):
    exit_code = analyze.handle_analyze_command(_args())

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "=== Content Analysis ===" in output
    assert "Query: ghost stories" in output
    assert "Items analysed: 2" in output
    assert "Average views: 3,000" in output
    assert "Sentiment: positive 2, negative 0, neutral 0" in output
    assert "Top themes: mystery (2)" in output
    assert "- Ghost Lights [positive]" in output
    assert output.rstrip().endswith("Spooky week")

    source, scraper = fake_pipeline[0]
    assert source == "youtube"
    assert scraper.calls == [("ghost stories", "month", 5)]
    assert scraper.closed is True


def test_handle_analyze_json_and_csv_output(fake_pipeline, tmp_path, capsys):
    output_path = tmp_path / "reports" / "ghosts.csv"

    exit_code = analyze.handle_analyze_command(
        _args(as_json=True, output=str(output_path), max_results=1, source="reddit")
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    header, _, body = out.partition("\n")
    assert header == f"Report written to {output_path}"
    report = json.loads(body)
    assert report["summary"]["total_items"] == 1
    assert report["overall_summary"] == "Spooky week"

    frame = pd.read_csv(output_path, encoding="utf-8-sig")
    assert list(frame["video_id"]) == ["abcdefghijk"]
    assert fake_pipeline[0][0] == "reddit"


def test_handle_analyze_reports_scraper_setup_failure(monkeypatch, capsys):
    def broken(source):
        raise ValueError("Reddit API credentials not found")

    monkeypatch.setattr(analyze, "create_scraper", broken)

    exit_code = analyze.handle_analyze_command(_args(source="reddit"))

    assert exit_code == 1
    assert (
        "Could not create reddit scraper: Reddit API credentials not found"
        in capsys.readouterr().out
    )


def test_handle_analyze_reports_pipeline_failure(fake_pipeline, monkeypatch, capsys):
    monkeypatch.setattr(
        analyze,
        "create_scraper",
        lambda source: FakeScraper([], error=RuntimeError("blocked")),
    )

    exit_code = analyze.handle_analyze_command(_args())

    assert exit_code == 1
    assert "Analysis failed: blocked" in capsys.readouterr().out

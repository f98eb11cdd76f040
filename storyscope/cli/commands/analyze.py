"""CLI command running the scrape and analysis pipeline once."""

from __future__ import annotations

import json
import logging

from storyscope import config
from storyscope.reporting.csv_writer import export_report_csv
from storyscope.scraping import SOURCES, create_scraper
from storyscope.services.llm import (
    ContentPipeline,
    OrchestrationManager,
    build_report,
)

from ..context import run_async

logger = logging.getLogger(__name__)


def add_analyze_parser(subparsers) -> None:
    parser = subparsers.add_parser(
        "analyze",
        help="Scrape content for a prompt and analyse it with the AI services",
    )
    parser.add_argument(
        "prompt",
        help='Free-text request, e.g. "find 5 videos about ghost stories"',
    )
    parser.add_argument(
        "--source",
        choices=SOURCES,
        default="youtube",
        help="Platform to scrape (default: youtube)",
    )
    parser.add_argument(
        "--max-results",
        type=int,
        help="Override the number of items parsed from the prompt",
    )
    parser.add_argument(
        "--output",
        help="Optional CSV path for the per-item report",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the full report as JSON",
    )
    parser.set_defaults(func=handle_analyze_command)


def handle_analyze_command(args) -> int:
    """Run the pipeline for ``args.prompt`` and print the outcome."""

    try:
        scraper = create_scraper(args.source)
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("Could not create %s scraper: %s", args.source, exc)
        print(f"Could not create {args.source} scraper: {exc}")
        return 1

    pipeline = ContentPipeline(
        OrchestrationManager(),
        scraper,
        batch_delay=config.PIPELINE_BATCH_DELAY,
        storyboard_delay=config.PIPELINE_STORYBOARD_DELAY,
    )

    try:
        result = run_async(
            pipeline.run(args.prompt, max_results=getattr(args, "max_results", None))
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Content analysis failed: %s", exc)
        print(f"Analysis failed: {exc}")
        return 1

    report = build_report(result)

    output = getattr(args, "output", None)
    if output:
        path = export_report_csv(report, output)
        print(f"Report written to {path}")

    if getattr(args, "as_json", False):
        print(json.dumps(report, indent=2, default=str))
    else:
        _render_summary(report)
    return 0


def _render_summary(report: dict) -> None:
    summary = report["summary"]
    parameters = report["metadata"].get("parameters", {})

    print("\n=== Content Analysis ===")
    print(f"Query: {parameters.get('query', '')}")
    print(f"Items analysed: {summary['total_items']}")
    print(f"Storyboards generated: {summary['storyboards_generated']}")
    print(f"Average views: {summary['average_views']:,}")

    sentiment = summary["sentiment_distribution"]
    print(
        "Sentiment: "
        + ", ".join(f"{label} {count}" for label, count in sentiment.items())
    )
    if summary["top_themes"]:
        print(
            "Top themes: "
            + ", ".join(
                f"{entry['theme']} ({entry['count']})" for entry in summary["top_themes"]
            )
        )

    for entry in report["items"]:
        analysis = entry.get("analysis") or {}
        print(f"- {entry['title']} [{analysis.get('sentiment', 'neutral')}]")

    print("\n=== Summary ===")
    print(report["overall_summary"])

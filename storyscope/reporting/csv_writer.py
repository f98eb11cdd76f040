"""CSV export of content analysis reports."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

DEFAULT_REPORT_CSV_ENCODING = "utf-8-sig"

REPORT_COLUMNS = [
    "platform",
    "video_id",
    "title",
    "channel_name",
    "view_count",
    "upload_date",
    "duration",
    "video_url",
    "summary",
    "sentiment",
    "sentiment_score",
    "content_type",
    "themes",
    "key_topics",
    "credibility_score",
    "storyboard_title",
    "storyboard_scenes",
    "estimated_duration",
]

logger = logging.getLogger(__name__)


def report_to_dataframe(report: Mapping[str, Any], separator: str = "; ") -> pd.DataFrame:
    """Flatten the per-item entries of a report into one row per item.

    Parameters
    ----------
    report:
        Report dictionary produced by ``build_report``.
    separator:
        Joiner used for list-valued columns such as themes.

    Returns
    -------
    pandas.DataFrame
        One row per analysed item with ``REPORT_COLUMNS`` as columns.
    """

    rows = []
    for entry in report.get("items", []):
        analysis = entry.get("analysis") or {}
        storyboard = entry.get("storyboard") or {}
        rows.append(
            {
                "platform": entry.get("platform", ""),
                "video_id": entry.get("video_id", ""),
                "title": entry.get("title", ""),
                "channel_name": entry.get("channel_name", ""),
                "view_count": entry.get("view_count", ""),
                "upload_date": entry.get("upload_date", ""),
                "duration": entry.get("duration", ""),
                "video_url": entry.get("video_url", ""),
                "summary": analysis.get("summary", ""),
                "sentiment": analysis.get("sentiment", ""),
                "sentiment_score": analysis.get("sentiment_score"),
                "content_type": analysis.get("content_type", ""),
                "themes": separator.join(analysis.get("themes", [])),
                "key_topics": separator.join(analysis.get("key_topics", [])),
                "credibility_score": analysis.get("credibility_score"),
                "storyboard_title": storyboard.get("title", ""),
                "storyboard_scenes": storyboard.get("total_scenes"),
                "estimated_duration": storyboard.get("estimated_duration", ""),
            }
        )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def write_report_csv(
    dataframe: pd.DataFrame,
    output_path: Path | str,
    *,
    encoding: str = DEFAULT_REPORT_CSV_ENCODING,
    index: bool = False,
    mkdirs: bool = True,
) -> Path:
    """Persist a report DataFrame to CSV, creating parent folders.

    ``utf-8-sig`` is the default so spreadsheets open the file with the
    right encoding.
    """

    path = Path(output_path)
    if mkdirs:
        path.parent.mkdir(parents=True, exist_ok=True)

    dataframe.to_csv(path, index=index, encoding=encoding)
    logger.info("Wrote report to %s (%d rows)", path, len(dataframe))
    return path


def export_report_csv(report: Mapping[str, Any], output_path: Path | str) -> Path:
    return write_report_csv(report_to_dataframe(report), output_path)

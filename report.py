"""Post-run reporting: flattens the aggregated result into a per-topic CSV.

One row per (topic, paper) pair, in result order, so the file opens readably
in a spreadsheet:

    topic, title, authors, paper_url, pdf_url
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from results import AggregatedResult

REPORT_COLUMNS = ["topic", "title", "authors", "paper_url", "pdf_url"]

LOGGER = logging.getLogger(__name__)


def write_topic_report(results: AggregatedResult, path: str | Path) -> int:
    """Write the topic report to path and return the number of data rows."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = 0
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for topic in results.topics:
            for paper in results.papers_for(topic):
                writer.writerow(
                    {
                        "topic": topic,
                        "title": paper.title,
                        "authors": "; ".join(paper.authors),
                        "paper_url": paper.paper_url,
                        "pdf_url": paper.pdf_url,
                    }
                )
                rows += 1

    LOGGER.info("Wrote topic report: %s rows -> %s", rows, path)
    return rows

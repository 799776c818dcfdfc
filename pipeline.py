"""Crawl -> parse -> dedupe -> classify -> persist orchestration."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from fetcher import FetchError, fetch_page
from filters import filter_valid_papers, normalize_topics
from llm_client import classify_papers
from models import Paper, paper_key
from parsers import UnsupportedSourceError, get_parser
from results import AggregatedResult
from store import PaperStore

LOGGER = logging.getLogger(__name__)


def collect_papers(urls: Sequence[str]) -> list[Paper]:
    """Fetch and parse each URL in order, returning the valid papers found.

    A URL that cannot be fetched or parsed is logged and skipped. Papers
    repeated across pages (same identity key) are kept once.
    """
    papers: list[Paper] = []
    seen: set[str] = set()

    for url in urls:
        LOGGER.info("Crawling %s", url)
        try:
            parser = get_parser(url)
            markup = fetch_page(url)
            parsed = parser.parse(markup, url)
        except (UnsupportedSourceError, FetchError) as exc:
            LOGGER.warning("Skipping %s: %s", url, exc)
            continue
        except Exception:  # a broken page must not stop the remaining URLs
            LOGGER.exception("Error parsing %s", url)
            continue

        valid = filter_valid_papers(parsed)
        if len(valid) != len(parsed):
            LOGGER.warning("Filtered out %s invalid papers from %s", len(parsed) - len(valid), url)

        added = 0
        for paper in valid:
            key = paper_key(paper)
            if key in seen:
                continue
            seen.add(key)
            papers.append(paper)
            added += 1
        LOGGER.info("Crawl: url=%s parsed=%s valid=%s new_unique=%s", url, len(parsed), len(valid), added)

    LOGGER.info("Found %s valid papers in total", len(papers))
    return papers


def partition_papers(papers: Sequence[Paper], store: PaperStore) -> tuple[list[Paper], list[Paper]]:
    """Split papers into (already classified, not yet classified)."""
    cached: list[Paper] = []
    fresh: list[Paper] = []
    for paper in papers:
        (cached if store.is_processed(paper) else fresh).append(paper)
    return cached, fresh


def crawl(
    urls: Sequence[str],
    topics: Sequence[str],
    store: PaperStore,
    *,
    batch_size: int | None = None,
    dry_run: bool = False,
) -> AggregatedResult:
    """Run one crawl and return the topic -> papers result.

    Cached classifications are reused without calling the model. Each newly
    classified paper is written to the cache and the results snapshot before
    it counts as done, so an interrupted run resumes where it stopped.
    """
    topics = normalize_topics(topics)
    if not topics:
        raise ValueError("At least one non-blank topic is required")

    store.init()

    results = AggregatedResult(topics)
    previous = store.load_results()
    if previous is not None:
        results.seed_from(previous)

    papers = collect_papers(urls)
    cached, fresh = partition_papers(papers, store)
    for paper in cached:
        results.merge(paper, store.get_cached_topics(paper) or [])
    LOGGER.info("Dedup: total=%s cached=%s new=%s", len(papers), len(cached), len(fresh))

    if dry_run:
        for paper in fresh:
            LOGGER.info("[dry-run] Would classify: %s", paper.title)
        return results

    def _on_complete(paper: Paper, relevant: list[str]) -> None:
        store.add_processed(paper, relevant)
        results.merge(paper, relevant)
        store.save_results(results)

    classified = 0
    if fresh:
        classified = asyncio.run(classify_papers(fresh, topics, _on_complete, batch_size=batch_size))

    store.save_results(results)

    for topic, count in results.counts().items():
        LOGGER.info('Found %s papers related to "%s"', count, topic)
    LOGGER.info(
        "Run complete. cached=%s classified=%s failed=%s",
        len(cached),
        classified,
        len(fresh) - classified,
    )
    return results

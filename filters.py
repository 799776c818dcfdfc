"""Validity and normalisation filters applied before classification."""

from __future__ import annotations

from collections.abc import Iterable

from models import Paper


def is_valid_paper(paper: Paper) -> bool:
    """Return True if the paper has a non-blank title and abstract.

    Papers failing this check are dropped right after parsing and never reach
    the classifier or the cache.
    """
    return bool(paper.title.strip()) and bool(paper.abstract.strip())


def filter_valid_papers(papers: Iterable[Paper]) -> list[Paper]:
    return [paper for paper in papers if is_valid_paper(paper)]


def normalize_topics(topics: Iterable[str]) -> list[str]:
    """Drop blank and repeated topics, keeping first-seen order.

    Topics are otherwise compared verbatim: no trimming or case folding.
    """
    seen: set[str] = set()
    ordered: list[str] = []
    for topic in topics:
        if not topic.strip() or topic in seen:
            continue
        seen.add(topic)
        ordered.append(topic)
    return ordered

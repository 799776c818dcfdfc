"""Topic -> papers aggregation built up over a crawl run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from models import Paper

LOGGER = logging.getLogger(__name__)


class AggregatedResult:
    """Ordered mapping of requested topics to the papers classified under them.

    Topic order follows the order the topics were requested in; papers under a
    topic keep their append order. A title appears at most once per topic.
    """

    def __init__(self, topics: Iterable[str]) -> None:
        self._papers: dict[str, list[Paper]] = {topic: [] for topic in topics}

    @property
    def topics(self) -> list[str]:
        return list(self._papers)

    def papers_for(self, topic: str) -> list[Paper]:
        return list(self._papers.get(topic, []))

    def add(self, topic: str, paper: Paper) -> bool:
        """Append paper under topic unless a paper with that title is there.

        Returns True when the paper was appended. Topics that were not
        requested for this run are ignored.
        """
        papers = self._papers.get(topic)
        if papers is None:
            return False
        if any(existing.title == paper.title for existing in papers):
            return False
        papers.append(paper)
        return True

    def merge(self, paper: Paper, topics: Iterable[str]) -> int:
        """Add paper under each of topics; returns how many entries were new."""
        return sum(1 for topic in topics if self.add(topic, paper))

    def seed_from(self, previous: AggregatedResult) -> None:
        """Carry over papers from a prior run for topics requested again."""
        for topic in self._papers:
            for paper in previous.papers_for(topic):
                self.add(topic, paper)

    def counts(self) -> dict[str, int]:
        return {topic: len(papers) for topic, papers in self._papers.items()}

    def to_json(self) -> list[dict[str, Any]]:
        return [
            {"topic": topic, "papers": [paper.to_dict() for paper in papers]}
            for topic, papers in self._papers.items()
        ]

    @classmethod
    def from_json(cls, payload: Any) -> AggregatedResult:
        """Build a result from its serialized form.

        Raises ValueError when the payload is not a list of topic objects.
        """
        if not isinstance(payload, list):
            raise ValueError("Expected a list of topic entries")

        entries: list[tuple[str, list[Any]]] = []
        for item in payload:
            if not isinstance(item, dict) or not isinstance(item.get("topic"), str):
                raise ValueError(f"Malformed topic entry: {item!r}")
            papers = item.get("papers") or []
            if not isinstance(papers, list):
                raise ValueError(f"Malformed paper list for topic {item['topic']!r}")
            entries.append((item["topic"], papers))

        result = cls(topic for topic, _ in entries)
        for topic, papers in entries:
            for raw in papers:
                if isinstance(raw, dict):
                    result.add(topic, Paper.from_dict(raw))
                else:
                    LOGGER.warning("Skipping malformed paper entry under topic=%s", topic)
        return result

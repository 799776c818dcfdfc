"""Shared typed models for the crawler."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Paper:
    """Normalized paper record extracted from a conference program page."""

    title: str
    authors: tuple[str, ...] = field(default_factory=tuple)
    abstract: str = ""
    paper_url: str = ""
    pdf_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "authors": list(self.authors),
            "abstract": self.abstract,
            "paper_url": self.paper_url,
            "pdf_url": self.pdf_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Paper:
        """Rebuild a paper from its JSON form; missing fields become empty."""
        authors = data.get("authors") or []
        return cls(
            title=_as_str(data.get("title")),
            authors=tuple(_as_str(a) for a in authors if isinstance(a, str)),
            abstract=_as_str(data.get("abstract")),
            paper_url=_as_str(data.get("paper_url")),
            pdf_url=_as_str(data.get("pdf_url")),
        )


def paper_key(paper: Paper) -> str:
    """Return the durable identity key: title followed by the ordered authors.

    The key is the JSON encoding of that list, so a separator character inside
    a title or author name cannot make two different papers share a key.

    Abstract and links are not part of the key, so a paper keeps its identity
    when only those change on the source page.
    """
    return json.dumps([paper.title, *paper.authors], ensure_ascii=False)


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""

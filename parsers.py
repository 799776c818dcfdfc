"""Per-site program page parsers and the URL-pattern registry."""

from __future__ import annotations

import logging
from typing import Callable, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from models import Paper

LOGGER = logging.getLogger(__name__)


class UnsupportedSourceError(RuntimeError):
    """No registered parser accepts the given URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No parser available for URL: {url}")
        self.url = url


class Parser(Protocol):
    def parse(self, markup: str, source_url: str) -> list[Paper]: ...


class NDSSParser:
    """Parser for NDSS Symposium accepted-paper program pages.

    Each paper is an ``li.list-group-item`` holding the linked title in
    ``strong a``, comma-separated authors in ``i p``, the abstract in a
    collapsible ``.collapse p`` block and, when published, a ``.pdf`` link.
    """

    def parse(self, markup: str, source_url: str) -> list[Paper]:
        soup = BeautifulSoup(markup, "html.parser")
        papers: list[Paper] = []

        for item in soup.select("li.list-group-item"):
            title_link = item.select_one("strong a")
            title = _text(title_link)
            href = title_link.get("href", "") if title_link else ""

            authors_node = item.select_one("i p")
            authors_text = _text(authors_node)
            authors = tuple(name.strip() for name in authors_text.split(",") if name.strip())

            abstract = " ".join(filter(None, (_text(p) for p in item.select(".collapse p"))))

            pdf_link = item.select_one('a[href$=".pdf"]')
            pdf_href = pdf_link.get("href", "") if pdf_link else ""

            papers.append(
                Paper(
                    title=title,
                    authors=authors,
                    abstract=abstract,
                    paper_url=_absolute(source_url, href),
                    pdf_url=_absolute(source_url, pdf_href),
                )
            )

        LOGGER.debug("NDSS parser: url=%s entries=%s", source_url, len(papers))
        return papers


def _text(node: Tag | None) -> str:
    """Element text with runs of whitespace collapsed to single spaces."""
    return " ".join(node.get_text().split()) if node is not None else ""


def _absolute(base_url: str, href: str) -> str:
    return urljoin(base_url, href) if href else ""


# Tried in order; the first predicate that accepts the URL wins.
_REGISTRY: list[tuple[Callable[[str], bool], Parser]] = [
    (lambda url: "ndss-symposium.org" in url, NDSSParser()),
]


def register_parser(predicate: Callable[[str], bool], parser: Parser) -> None:
    """Register a parser for URLs accepted by predicate, after existing ones."""
    _REGISTRY.append((predicate, parser))


def get_parser(url: str) -> Parser:
    """Return the first registered parser whose predicate matches url."""
    for predicate, parser in _REGISTRY:
        if predicate(url):
            return parser
    raise UnsupportedSourceError(url)

"""LLM-based topic classification for crawled papers."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from json import JSONDecodeError
from typing import Any, Callable, Sequence

from openai import AsyncOpenAI

from models import Paper

DEFAULT_OPENAI_MODEL = "anthropic/claude-3-5-sonnet"
DEFAULT_TEMPERATURE = "0.1"
DEFAULT_TIMEOUT_SECONDS = "60"
DEFAULT_BATCH_SIZE = "1"

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a research paper classifier. "
    "Respond ONLY with a JSON array of strings. No prose, no markdown."
)

CompletionHandler = Callable[[Paper, list[str]], None]


class ClassificationError(RuntimeError):
    """The model call failed or its reply was not a JSON array."""


def build_prompt(paper: Paper, topics: Sequence[str]) -> str:
    """Render the user prompt for one paper against the topic list."""
    topic_lines = "\n".join(f"- {topic}" for topic in topics)
    example = json.dumps(topics[:1])
    return (
        "Given a list of topics, identify which of them are related to this paper.\n"
        "Respond with an array in JSON format, using topic names exactly as listed. "
        "If no paper info is given or no topics are related, return an empty array.\n\n"
        f"Paper Title: {paper.title}\n"
        f"Paper Abstract: {paper.abstract}\n\n"
        f"Topics to consider:\n{topic_lines}\n\n"
        f"Response format example: {example}\n"
    )


async def request_topics(paper: Paper, topics: Sequence[str]) -> list[str]:
    """Ask the model which of topics apply to paper.

    Entries that are not one of topics verbatim are dropped. Raises
    ClassificationError if the call fails or the reply cannot be parsed.
    """
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(paper, topics)},
    ]

    try:
        content = await _chat(messages)
    except Exception as exc:  # any client/transport failure fails this paper only
        raise ClassificationError(f"Model call failed for paper={paper.title!r}: {exc}") from exc

    if not content or not content.strip():
        raise ClassificationError(f"Model returned an empty response for paper={paper.title!r}")

    LOGGER.debug("Model response for paper=%r: %s", paper.title, content)
    parsed = _parse_topic_array(content)
    return _filter_known_topics(parsed, topics, paper)


async def classify_paper(paper: Paper, topics: Sequence[str]) -> list[str]:
    """Return the subset of topics relevant to paper, or [] if classification fails.

    Public single-paper entry point. The batch runner calls request_topics
    directly so that a failed paper is left uncached rather than stored with
    no topics.
    """
    try:
        return await request_topics(paper, topics)
    except ClassificationError as exc:
        LOGGER.warning("Classification failed, treating as no topics: %s", exc)
        return []


async def classify_papers(
    papers: Sequence[Paper],
    topics: Sequence[str],
    on_complete: CompletionHandler,
    batch_size: int | None = None,
) -> int:
    """Classify papers in sequential groups of batch_size concurrent requests.

    on_complete(paper, topics) runs once per successfully classified paper as
    soon as that paper resolves, so completions within a group interleave.
    A paper whose classification or handler fails is logged and skipped
    without affecting the rest of its group.

    Returns the number of papers for which on_complete ran without error.
    """
    if batch_size is None:
        batch_size = default_batch_size()
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    async def _process(paper: Paper) -> bool:
        try:
            relevant = await request_topics(paper, topics)
        except ClassificationError as exc:
            LOGGER.warning("Skipping paper, will retry on next run: %s", exc)
            return False

        LOGGER.info("Classified paper=%r -> %s", paper.title, relevant)
        try:
            on_complete(paper, relevant)
        except Exception:  # handler failures stay per paper
            LOGGER.exception("Completion handler failed for paper=%r", paper.title)
            return False
        return True

    completed = 0
    total_groups = (len(papers) + batch_size - 1) // batch_size
    for group_index, start in enumerate(range(0, len(papers), batch_size), start=1):
        group = papers[start : start + batch_size]
        LOGGER.info("Classifying group %s/%s (%s papers)", group_index, total_groups, len(group))
        outcomes = await asyncio.gather(*(_process(paper) for paper in group))
        completed += sum(outcomes)

    return completed


def default_batch_size() -> int:
    """Group size for concurrent classification, from CLASSIFY_BATCH_SIZE."""
    return int(os.getenv("CLASSIFY_BATCH_SIZE", DEFAULT_BATCH_SIZE))


def _temperature() -> float:
    return float(os.getenv("OPENAI_TEMPERATURE", DEFAULT_TEMPERATURE))


def _timeout() -> float:
    return float(os.getenv("LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))


async def _chat(messages: list[dict[str, str]]) -> str:
    provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()

    if provider == "anthropic":
        from anthropic_client import claude_chat  # noqa: PLC0415

        return await claude_chat(
            messages,
            temperature=_temperature(),
            timeout=_timeout(),
        )

    if provider != "openai":
        raise RuntimeError(f"Unsupported LLM_PROVIDER: {provider}")

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is required")

    async with AsyncOpenAI(
        api_key=api_key,
        base_url=os.getenv("OPENAI_API_BASE_URL") or None,
        timeout=_timeout(),
    ) as client:
        response = await client.chat.completions.create(
            model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            temperature=_temperature(),
            messages=messages,
        )
    return response.choices[0].message.content or ""


def _parse_topic_array(content: str) -> list[Any]:
    """Parse possibly noisy model output into a JSON array."""
    try:
        parsed = json.loads(content)
    except JSONDecodeError:
        parsed = _extract_first_json_array(content)

    if not isinstance(parsed, list):
        raise ClassificationError(f"Expected JSON array from model, got {type(parsed).__name__}")
    return parsed


def _extract_first_json_array(content: str) -> list[Any]:
    """Extract the first decodable JSON array from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "[":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, list):
            return candidate
    raise ClassificationError("Could not extract a JSON array from model output")


def _filter_known_topics(parsed: list[Any], topics: Sequence[str], paper: Paper) -> list[str]:
    known = set(topics)
    valid: list[str] = []
    for entry in parsed:
        if isinstance(entry, str) and entry in known and entry not in valid:
            valid.append(entry)

    dropped = [entry for entry in parsed if not (isinstance(entry, str) and entry in known)]
    if dropped:
        LOGGER.warning("Dropped unknown topics for paper=%r: %s", paper.title, dropped)
    return valid

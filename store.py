"""JSON-file persistence for classified papers and the aggregated results.

The data directory holds three documents:

  processed_papers.json   {paper_key: [topic, ...]} for every paper already
                           sent through the classifier. Rewritten in full on
                           every addition so an interrupted run loses nothing
                           that was classified before the interruption.

  results.json            the current AggregatedResult as
                           [{"topic": ..., "papers": [...]}, ...].

  results.json.backup     the previous results.json, copied aside before each
                           overwrite.

All writes go through a temp file in the same directory and an atomic rename.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from filters import is_valid_paper
from models import Paper, paper_key
from results import AggregatedResult

DEFAULT_DATA_DIR = "data"
PROCESSED_PAPERS_FILENAME = "processed_papers.json"
RESULTS_FILENAME = "results.json"
BACKUP_SUFFIX = ".backup"

LOGGER = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """A durable write or storage setup step failed."""


class PaperStore:
    """Write-through cache of paper classifications plus the results snapshot."""

    def __init__(self, data_dir: str | Path | None = None) -> None:
        self.data_dir = Path(data_dir if data_dir is not None else os.getenv("DATA_DIR", DEFAULT_DATA_DIR))
        self.processed_path = self.data_dir / PROCESSED_PAPERS_FILENAME
        self.results_path = self.data_dir / RESULTS_FILENAME
        self.backup_path = self.results_path.with_name(self.results_path.name + BACKUP_SUFFIX)
        self._processed: dict[str, list[str]] = {}

    def init(self) -> None:
        """Create the data directory if needed and load the processed-paper cache."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {exc}") from exc

        self._processed = self._load_processed()
        LOGGER.info("Loaded %s cached classifications from %s", len(self._processed), self.processed_path)

    def is_processed(self, paper: Paper) -> bool:
        return paper_key(paper) in self._processed

    def get_cached_topics(self, paper: Paper) -> list[str] | None:
        topics = self._processed.get(paper_key(paper))
        return list(topics) if topics is not None else None

    def add_processed(self, paper: Paper, topics: list[str]) -> None:
        """Record paper's topics and rewrite the cache file immediately.

        A failed write is logged and otherwise ignored; the in-memory entry is
        kept so the rest of this run still sees the paper as processed.
        """
        if not is_valid_paper(paper):
            raise ValueError(f"Refusing to cache invalid paper: {paper.title!r}")

        self._processed[paper_key(paper)] = list(topics)
        try:
            _write_json_atomic(self.processed_path, self._processed)
        except OSError as exc:
            LOGGER.error("Failed to persist processed-paper cache (%s): %s", self.processed_path, exc)
            return
        LOGGER.info("Cached paper: %s", paper.title)

    def save_results(self, results: AggregatedResult) -> None:
        """Back up the current snapshot, then write results in its place.

        Raises PersistenceError if either step fails.
        """
        try:
            if self.results_path.exists():
                shutil.copyfile(self.results_path, self.backup_path)
            _write_json_atomic(self.results_path, results.to_json())
        except OSError as exc:
            LOGGER.error("Error saving results to %s: %s", self.results_path, exc)
            raise PersistenceError(f"Failed to save results to {self.results_path}: {exc}") from exc

    def load_results(self) -> AggregatedResult | None:
        """Return the last saved snapshot, falling back to the backup copy.

        Missing or unreadable snapshots mean "no prior state" and yield None.
        """
        for path in (self.results_path, self.backup_path):
            if not path.exists():
                continue
            try:
                with path.open(encoding="utf-8") as fh:
                    payload = json.load(fh)
                result = AggregatedResult.from_json(payload)
            except (OSError, ValueError) as exc:
                LOGGER.warning("Ignoring unreadable results snapshot %s: %s", path, exc)
                continue
            LOGGER.info("Loaded previous results from %s", path)
            return result
        return None

    def __len__(self) -> int:
        return len(self._processed)

    def _load_processed(self) -> dict[str, list[str]]:
        if not self.processed_path.exists():
            return {}

        try:
            with self.processed_path.open(encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            LOGGER.error("Error loading processed-paper cache %s: %s", self.processed_path, exc)
            return {}

        if not isinstance(raw, dict):
            LOGGER.error("Processed-paper cache %s is not a JSON object; ignoring", self.processed_path)
            return {}

        processed: dict[str, list[str]] = {}
        for key, topics in raw.items():
            if isinstance(topics, list) and all(isinstance(t, str) for t in topics):
                processed[key] = topics
            else:
                LOGGER.warning("Skipping malformed cache entry for key=%s", key)
        return processed


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write data as indented JSON to path via a sibling temp file and rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

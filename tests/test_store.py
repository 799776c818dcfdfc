from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from models import Paper
from results import AggregatedResult
from store import PaperStore, PersistenceError

SAMPLE_PAPER = Paper(
    title="Fuzzing SGX Enclaves at Scale",
    authors=("Alice Zhang", "Bob Miller"),
    abstract="We present a fuzzer for Intel SGX enclaves.",
    paper_url="https://www.ndss-symposium.org/ndss-paper/enclave-fuzzing/",
)


@pytest.fixture
def store(tmp_path: Path) -> PaperStore:
    s = PaperStore(tmp_path / "data")
    s.init()
    return s


def _result_with(topic: str, paper: Paper) -> AggregatedResult:
    result = AggregatedResult([topic])
    result.add(topic, paper)
    return result


def test_init_creates_data_dir_and_is_idempotent(tmp_path: Path) -> None:
    s = PaperStore(tmp_path / "nested" / "data")
    s.init()
    s.init()
    assert (tmp_path / "nested" / "data").is_dir()
    assert len(s) == 0


def test_init_raises_when_data_dir_cannot_be_created(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a dir", encoding="utf-8")
    with pytest.raises(PersistenceError):
        PaperStore(blocker / "data").init()


def test_unprocessed_paper_lookups(store: PaperStore) -> None:
    assert store.is_processed(SAMPLE_PAPER) is False
    assert store.get_cached_topics(SAMPLE_PAPER) is None


def test_add_processed_writes_through_to_disk(store: PaperStore) -> None:
    store.add_processed(SAMPLE_PAPER, ["SGX"])

    assert store.is_processed(SAMPLE_PAPER) is True
    assert store.get_cached_topics(SAMPLE_PAPER) == ["SGX"]

    on_disk = json.loads(store.processed_path.read_text(encoding="utf-8"))
    assert on_disk == {'["Fuzzing SGX Enclaves at Scale", "Alice Zhang", "Bob Miller"]': ["SGX"]}


def test_cache_survives_restart(store: PaperStore) -> None:
    store.add_processed(SAMPLE_PAPER, [])

    reopened = PaperStore(store.data_dir)
    reopened.init()
    assert reopened.is_processed(SAMPLE_PAPER) is True
    assert reopened.get_cached_topics(SAMPLE_PAPER) == []


def test_cache_lookup_ignores_abstract_changes(store: PaperStore) -> None:
    store.add_processed(SAMPLE_PAPER, ["SGX"])
    edited = Paper(title=SAMPLE_PAPER.title, authors=SAMPLE_PAPER.authors, abstract="Revised abstract.")
    assert store.get_cached_topics(edited) == ["SGX"]


def test_add_processed_rejects_invalid_paper(store: PaperStore) -> None:
    invalid = Paper(title="No Abstract", authors=("A",), abstract="  ")
    with pytest.raises(ValueError):
        store.add_processed(invalid, ["SGX"])
    assert not store.processed_path.exists()


def test_add_processed_swallows_write_failure(store: PaperStore) -> None:
    with patch("store._write_json_atomic", side_effect=OSError("disk full")):
        store.add_processed(SAMPLE_PAPER, ["SGX"])
    assert store.is_processed(SAMPLE_PAPER) is True


def test_corrupt_cache_is_treated_as_empty(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "processed_papers.json").write_text("{not json", encoding="utf-8")

    s = PaperStore(data_dir)
    s.init()
    assert len(s) == 0


def test_load_results_none_when_absent(store: PaperStore) -> None:
    assert store.load_results() is None


def test_save_then_load_results(store: PaperStore) -> None:
    store.save_results(_result_with("SGX", SAMPLE_PAPER))

    loaded = store.load_results()
    assert loaded is not None
    assert loaded.topics == ["SGX"]
    assert loaded.papers_for("SGX") == [SAMPLE_PAPER]


def test_second_save_backs_up_previous_snapshot(store: PaperStore) -> None:
    first = AggregatedResult(["SGX"])
    store.save_results(first)
    store.save_results(_result_with("SGX", SAMPLE_PAPER))

    backup = json.loads(store.backup_path.read_text(encoding="utf-8"))
    current = json.loads(store.results_path.read_text(encoding="utf-8"))
    assert backup == [{"topic": "SGX", "papers": []}]
    assert current[0]["papers"][0]["title"] == SAMPLE_PAPER.title


def test_first_save_creates_no_backup(store: PaperStore) -> None:
    store.save_results(AggregatedResult(["SGX"]))
    assert not store.backup_path.exists()


def test_save_results_raises_persistence_error(store: PaperStore) -> None:
    with patch("store._write_json_atomic", side_effect=OSError("read-only file system")):
        with pytest.raises(PersistenceError, match="read-only"):
            store.save_results(AggregatedResult(["SGX"]))


def test_corrupt_snapshot_falls_back_to_backup(store: PaperStore) -> None:
    store.save_results(_result_with("SGX", SAMPLE_PAPER))
    store.save_results(_result_with("SGX", SAMPLE_PAPER))
    store.results_path.write_text('[{"topic": "SGX", "pap', encoding="utf-8")

    loaded = store.load_results()
    assert loaded is not None
    assert loaded.papers_for("SGX") == [SAMPLE_PAPER]


def test_corrupt_snapshot_without_backup_is_no_prior_state(store: PaperStore) -> None:
    store.results_path.write_text("garbage", encoding="utf-8")
    assert store.load_results() is None


def test_writes_leave_no_temp_files(store: PaperStore) -> None:
    store.add_processed(SAMPLE_PAPER, ["SGX"])
    store.save_results(AggregatedResult(["SGX"]))
    store.save_results(AggregatedResult(["SGX"]))

    names = sorted(p.name for p in store.data_dir.iterdir())
    assert names == ["processed_papers.json", "results.json", "results.json.backup"]


def test_data_dir_read_from_environment_at_construction(tmp_path: Path) -> None:
    with patch.dict("os.environ", {"DATA_DIR": str(tmp_path / "from-env")}):
        s = PaperStore()
    assert s.data_dir == tmp_path / "from-env"
    assert s.processed_path.parent == tmp_path / "from-env"

"""Tests for the CLI entrypoint (main.main)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

import main
from models import Paper
from results import AggregatedResult


def _result() -> AggregatedResult:
    result = AggregatedResult(["SGX", "TDX"])
    result.add("SGX", Paper(title="Enclave Paper", authors=("Alice",), abstract="abstract"))
    return result


def test_main_prints_result_json(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    with patch("main.load_dotenv"), \
         patch("main.crawl", return_value=_result()) as mock_crawl:
        main.main(["--url", "https://www.ndss-symposium.org/x/", "--topic", "SGX", "--topic", "TDX",
                   "--data-dir", str(tmp_path)])

    args, kwargs = mock_crawl.call_args
    assert args[0] == ["https://www.ndss-symposium.org/x/"]
    assert args[1] == ["SGX", "TDX"]
    assert args[2].data_dir == tmp_path
    assert kwargs["dry_run"] is False

    output = json.loads(capsys.readouterr().out)
    assert [entry["topic"] for entry in output] == ["SGX", "TDX"]
    assert output[0]["papers"][0]["title"] == "Enclave Paper"


def test_main_defaults_from_env(capsys: pytest.CaptureFixture[str]) -> None:
    env = {"CRAWL_URLS": "https://a.example/, https://b.example/", "CRAWL_TOPICS": "SGX,TDX"}
    with patch("main.load_dotenv"), \
         patch.dict("os.environ", env), \
         patch("main.crawl", return_value=_result()) as mock_crawl:
        main.main([])

    args, _ = mock_crawl.call_args
    assert args[0] == ["https://a.example/", "https://b.example/"]
    assert args[1] == ["SGX", "TDX"]


def test_main_falls_back_to_builtin_defaults() -> None:
    with patch("main.load_dotenv"), \
         patch.dict("os.environ", {"CRAWL_URLS": "", "CRAWL_TOPICS": ""}), \
         patch("main.crawl", return_value=_result()) as mock_crawl:
        main.main([])

    args, _ = mock_crawl.call_args
    assert args[0] == main.DEFAULT_URLS
    assert args[1] == main.DEFAULT_TOPICS


def test_main_writes_report_when_requested(tmp_path: Path) -> None:
    report_path = tmp_path / "topics.csv"
    with patch("main.load_dotenv"), \
         patch("main.crawl", return_value=_result()):
        main.main(["--topic", "SGX", "--report", str(report_path)])

    assert report_path.exists()


def test_main_propagates_storage_failure() -> None:
    from store import PersistenceError

    with patch("main.load_dotenv"), \
         patch("main.crawl", side_effect=PersistenceError("disk full")):
        with pytest.raises(PersistenceError):
            main.main(["--topic", "SGX"])


def test_main_loads_dotenv_from_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("DATA_DIR=custom_data\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATA_DIR", raising=False)

    with patch.dict("os.environ"), \
         patch("main.crawl", return_value=_result()) as mock_crawl:
        main.main(["--topic", "SGX"])

    args, kwargs = mock_crawl.call_args
    assert args[2].data_dir == Path("custom_data")
    assert kwargs["batch_size"] is None

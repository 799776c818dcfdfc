"""CLI entrypoint for the conference topic crawler."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from dotenv import find_dotenv, load_dotenv

from pipeline import crawl
from store import PaperStore

DEFAULT_URLS = [
    "https://www.ndss-symposium.org/ndss-program/ndss-2021/",
    "https://www.ndss-symposium.org/ndss-program/ndss-2022/",
    "https://www.ndss-symposium.org/ndss-program/symposium-2023/",
    "https://www.ndss-symposium.org/ndss-program/symposium-2024/",
    "https://www.ndss-symposium.org/ndss-program/symposium-2025/",
]

DEFAULT_TOPICS = [
    "Trusted Execution Environment",
    "SGX",
    "TDX",
    "Confidential Computing",
]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Crawl conference program pages and group papers by research topic"
    )
    parser.add_argument(
        "--url",
        dest="urls",
        action="append",
        default=None,
        help="Program page URL to crawl (repeatable). Defaults to CRAWL_URLS or the NDSS 2021-2025 programs.",
    )
    parser.add_argument(
        "--topic",
        dest="topics",
        action="append",
        default=None,
        help="Topic to classify papers against (repeatable). Defaults to CRAWL_TOPICS or the built-in TEE topics.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of papers classified concurrently per group (default: CLASSIFY_BATCH_SIZE or 1)",
    )
    parser.add_argument("--data-dir", default=None, help="Directory for the cache and results snapshot")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Crawl and dedupe only; log which papers would be classified",
    )
    parser.add_argument(
        "--report",
        default=os.getenv("TOPIC_REPORT_PATH") or None,
        help="Optional path for a per-topic CSV report",
    )
    return parser.parse_args(argv)


def _split_env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def main(argv: list[str] | None = None) -> None:
    """Initialize config, run the crawl and print the result as JSON."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = parse_args(argv)

    urls = args.urls or _split_env_list("CRAWL_URLS") or DEFAULT_URLS
    topics = args.topics or _split_env_list("CRAWL_TOPICS") or DEFAULT_TOPICS

    store = PaperStore(args.data_dir)
    results = crawl(urls, topics, store, batch_size=args.batch_size, dry_run=args.dry_run)

    if args.report and not args.dry_run:
        try:
            from report import write_topic_report  # noqa: PLC0415

            write_topic_report(results, args.report)
        except Exception as exc:
            logging.warning("Report generation failed (non-fatal): %s", exc)

    print(json.dumps(results.to_json(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()

"""HTTP retrieval of conference program pages."""

from __future__ import annotations

import logging
import os

import requests
from bs4 import UnicodeDammit

DEFAULT_REQUEST_TIMEOUT_SECONDS = "30"
USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

LOGGER = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """A program page could not be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url


def fetch_page(url: str) -> str:
    """GET url and return the decoded response body.

    When the server declares no charset, the encoding is taken from the
    document itself (meta tag, BOM or byte sniffing) instead of the HTTP
    default of ISO-8859-1.

    Raises FetchError on network errors and non-2xx responses.
    """
    LOGGER.info("Fetching %s", url)
    try:
        response = requests.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=float(os.getenv("REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS)),
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(url, str(exc)) from exc

    LOGGER.debug("Fetched %s status=%s bytes=%s", url, response.status_code, len(response.content))
    if "charset" in response.headers.get("Content-Type", "").lower():
        return response.text
    return UnicodeDammit(response.content, is_html=True).unicode_markup

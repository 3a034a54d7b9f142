"""
Single-shot HTTP fetching with outcome classification.

Network failures come back as values rather than exceptions so the crawl
loop handles every case as an explicit branch.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Union

import requests
import urllib3

from linkcrawler.config import CrawlConfig

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Success:
    """2xx response."""
    url: str
    status: int
    body: str
    content_type: str = ""

    @property
    def is_html(self) -> bool:
        # Servers that omit Content-Type still get their body parsed
        return not self.content_type or "html" in self.content_type.lower()


@dataclass(frozen=True, slots=True)
class Redirect:
    """3xx response; ``location`` is the raw Location header, if any."""
    url: str
    status: int
    location: Optional[str] = None


@dataclass(frozen=True, slots=True)
class HTTPFailure:
    """Any status outside 2xx/3xx."""
    url: str
    status: int
    message: str


@dataclass(frozen=True, slots=True)
class TransportException:
    """Connection, DNS, timeout, TLS or request-construction failure."""
    url: str
    message: str
    error_type: str = "RequestException"


FetchOutcome = Union[Success, Redirect, HTTPFailure, TransportException]


def classify_response(url: str, response: requests.Response) -> FetchOutcome:
    """Map a response onto the outcome variants by status code."""
    status = response.status_code
    if 200 <= status < 300:
        return Success(
            url=url,
            status=status,
            body=response.text or "",
            content_type=response.headers.get("content-type") or "",
        )
    if 300 <= status < 400:
        return Redirect(url=url, status=status, location=response.headers.get("location"))
    return HTTPFailure(url=url, status=status, message=response.reason or f"HTTP {status}")


class Fetcher:
    """
    Issue one GET per URL with the configured timeout and User-Agent.

    Redirects are not followed; the caller receives the Location header and
    decides whether to queue the target. Each thread gets its own
    ``requests.Session`` so the fetcher can back a worker pool.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._thread_local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def fetch(self, url: str) -> FetchOutcome:
        session = self._thread_local_session()
        try:
            response = session.get(url, timeout=self.config.timeout, allow_redirects=False)
        except (requests.RequestException, urllib3.exceptions.HTTPError) as exc:
            # urllib3 parse errors (e.g. an empty host label) are not wrapped by requests
            LOGGER.debug("Transport error for %s: %s", url, exc)
            return TransportException(url=url, message=str(exc), error_type=exc.__class__.__name__)
        return classify_response(url, response)

    def close(self) -> None:
        with self._sessions_lock:
            for session in self._sessions:
                session.close()
            self._sessions.clear()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.config.user_agent
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

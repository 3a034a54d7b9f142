"""
Core crawling logic: frontier, link extraction and the breadth-first crawl loop.
"""
from __future__ import annotations

import logging
import re
import sys
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from bs4 import BeautifulSoup, SoupStrainer

from linkcrawler.config import CrawlConfig, default_config
from linkcrawler.errors import ConfigError, InvalidURL, MissingBaseURL
from linkcrawler.fetcher import (
    Fetcher,
    FetchOutcome,
    HTTPFailure,
    Redirect,
    Success,
    TransportException,
)
from linkcrawler.report import EXCEPTION_STATUS, BrokenLink, CrawlReport, FailedPage
from linkcrawler.urls import HTTP_SCHEMES, canonicalize, host_of, is_excluded, is_http_url, is_internal, resolve

LOGGER = logging.getLogger(__name__)

# SoupStrainer to parse only <a> tags (faster link extraction)
LINK_STRAINER = SoupStrainer("a", href=True)

# Explicit scheme on an href (mailto:, javascript:, tel:, ...)
SCHEME_PREFIX = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")

SeedProvider = Callable[[CrawlConfig], Iterable[str]]


class CrawlState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


@dataclass(slots=True)
class CrawlStats:
    """Counters collected during the crawl for progress output."""
    pages_checked: int = 0
    iterations: int = 0
    redirects: int = 0
    links_discovered: int = 0
    failures: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def rate(self) -> float:
        elapsed = time.monotonic() - self.started_at
        return round(self.pages_checked / elapsed, 1) if elapsed > 0 else 0.0


@dataclass(slots=True)
class LinkExtraction:
    """Links found on one page: in-scope candidates plus unresolvable hrefs."""
    candidates: List[str] = field(default_factory=list)
    broken_links: List[BrokenLink] = field(default_factory=list)


class VisitedSet:
    """
    Canonical URLs already fetched or about to be fetched.

    Only grows. ``add_if_new`` is an atomic check-and-insert.
    """

    def __init__(self) -> None:
        self._urls: Dict[str, None] = {}
        self._lock = threading.Lock()

    def add_if_new(self, url: str) -> bool:
        with self._lock:
            if url in self._urls:
                return False
            self._urls[url] = None
            return True

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def snapshot(self) -> Tuple[str, ...]:
        """URLs in the order they were admitted."""
        with self._lock:
            return tuple(self._urls)


class Frontier:
    """FIFO queue of pending URLs, traversed breadth-first by discovery."""

    def __init__(self, visited: VisitedSet) -> None:
        self._visited = visited
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()

    def push(self, url: str) -> bool:
        """Queue ``url`` unless it is already visited or queued."""
        if url in self._queued or url in self._visited:
            return False
        self._queue.append(url)
        self._queued.add(url)
        return True

    def push_many(self, urls: Iterable[str]) -> int:
        return sum(1 for url in urls if self.push(url))

    def pop(self) -> Optional[str]:
        if not self._queue:
            return None
        url = self._queue.popleft()
        self._queued.discard(url)
        return url

    def __len__(self) -> int:
        return len(self._queue)


def parse_hrefs(html: str) -> List[str]:
    """Extract all href values from <a> tags using optimized parsing."""
    soup = BeautifulSoup(html, "lxml", parse_only=LINK_STRAINER)
    return [a["href"] for a in soup.find_all("a", href=True) if a.get("href")]


def extract_links(
    page_url: str,
    html: str,
    config: CrawlConfig,
    base_host: Optional[str] = None,
) -> LinkExtraction:
    """
    Find the links on a page worth queueing.

    Each href is trimmed and resolved against ``page_url``. Unresolvable hrefs
    become broken links; non-HTTP schemes, external hosts (unless
    ``follow_external_links``) and filtered URLs are dropped. Candidates keep
    their order of appearance, each listed once.
    """
    extraction = LinkExtraction()
    if not html:
        return extraction
    if base_host is None:
        base_host = host_of(config.base_url or page_url)

    try:
        hrefs = parse_hrefs(html)
    except Exception as exc:
        LOGGER.warning("Error parsing HTML for %s: %s", page_url, exc)
        return extraction

    seen: Set[str] = set()
    for raw_href in hrefs:
        href = raw_href.strip()
        if not href:
            continue

        scheme = SCHEME_PREFIX.match(href)
        if scheme and scheme.group(1).lower() not in HTTP_SCHEMES:
            LOGGER.debug("Non-HTTP link (skipped): %s", href)
            continue

        try:
            link_url = resolve(page_url, href)
        except InvalidURL as exc:
            extraction.broken_links.append(BrokenLink(found_on=page_url, broken_link=href, error=str(exc)))
            continue

        if not config.follow_external_links and not is_internal(link_url, base_host):
            LOGGER.debug("External (skipped): %s", link_url)
            continue
        if is_excluded(link_url, config.exclude_patterns, config.include_patterns):
            LOGGER.debug("Excluded: %s", link_url)
            continue
        if link_url in seen:
            continue

        seen.add(link_url)
        extraction.candidates.append(link_url)

    return extraction


def print_progress(stats: CrawlStats, queue_size: int) -> None:
    """Print real-time progress to stderr."""
    progress = (
        f"\r\033[K[{stats.pages_checked}] Checked: {stats.pages_checked} | "
        f"Rate: {stats.rate()}/sec | Queue: {queue_size} | Failed: {stats.failures}"
    )
    sys.stderr.write(progress)
    sys.stderr.flush()


def print_scan_line(url: str, outcome: FetchOutcome, new_links: int) -> None:
    """Print single scan result line."""
    match outcome:
        case Success(status=status):
            line = f"  ✓ {status} {url} (+{new_links} links)"
        case Redirect(status=status, location=location):
            line = f"  → {status} {url} redirects to {location}"
        case HTTPFailure(status=status):
            line = f"  ✗ {status} {url}"
        case TransportException(message=message):
            line = f"  ✗ ERR {url}: {message}"
    sys.stderr.write(f"\n{line}")
    sys.stderr.flush()


class Crawler:
    """
    Breadth-first crawl of one site.

    The crawler moves through IDLE -> RUNNING -> DRAINING -> DONE. It is
    single-use: ``run`` seeds the frontier, processes it until it is empty or
    ``max_iterations`` entries have been popped, and returns the report.

    With ``max_concurrent > 1`` up to that many admitted URLs are fetched in
    parallel; their outcomes are handled on the calling thread in the order
    the URLs were popped, so the frontier and visited set have one owner.
    """

    def __init__(
        self,
        config: CrawlConfig,
        seed_provider: Optional[SeedProvider] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        if not config.base_url:
            raise MissingBaseURL()
        try:
            base_url = canonicalize(config.base_url)
        except InvalidURL as exc:
            raise ConfigError(f"Invalid base URL: {config.base_url}") from exc
        if not is_http_url(base_url):
            raise ConfigError(f"Invalid base URL: {config.base_url}")

        self.config = config
        self.base_url = base_url
        self.base_host = host_of(base_url)
        self.seed_provider = seed_provider

        self.visited = VisitedSet()
        self.frontier = Frontier(self.visited)
        self.failed_pages: List[FailedPage] = []
        self.broken_links: List[BrokenLink] = []
        self.stats = CrawlStats()
        self.state = CrawlState.IDLE

        self._fetcher = fetcher

    def initial_urls(self) -> List[str]:
        """The base URL plus whatever the seed provider supplies."""
        urls = [self.base_url]
        if self.seed_provider is None:
            return urls

        try:
            extra = list(self.seed_provider(self.config))
        except Exception as exc:
            LOGGER.warning("Could not load seed URLs, crawling from %s only: %s", self.base_url, exc)
            return urls

        for seed in extra:
            try:
                url = resolve(self.base_url, seed)
            except InvalidURL as exc:
                LOGGER.warning("Skipping invalid seed URL %r: %s", seed, exc)
                continue
            if not is_http_url(url):
                LOGGER.warning("Skipping non-HTTP seed URL %r", seed)
                continue
            urls.append(url)
        return urls

    def run(self) -> CrawlReport:
        if self.state is not CrawlState.IDLE:
            raise RuntimeError("Crawler.run() can only be called once")

        self.frontier.push_many(self.initial_urls())
        self.state = CrawlState.RUNNING
        self.stats = CrawlStats()
        LOGGER.info("Starting crawl of %s", self.base_url)

        fetcher = self._fetcher or Fetcher(self.config)
        executor: Optional[ThreadPoolExecutor] = None
        if self.config.max_concurrent > 1:
            executor = ThreadPoolExecutor(
                max_workers=self.config.max_concurrent,
                thread_name_prefix="linkcrawler",
            )

        try:
            while self.state is CrawlState.RUNNING:
                batch = self._next_batch()
                if not batch:
                    self.state = CrawlState.DRAINING
                    break

                if executor is None:
                    outcomes = [fetcher.fetch(url) for url in batch]
                else:
                    outcomes = list(executor.map(fetcher.fetch, batch))

                for url, outcome in zip(batch, outcomes):
                    self.handle_outcome(url, outcome)

                if self.config.delay_between_requests > 0:
                    time.sleep(self.config.delay_between_requests)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
            if self._fetcher is None:
                fetcher.close()

        if self.config.verbose:
            sys.stderr.write("\n\n")
        LOGGER.info(
            "Crawl completed: %d pages in %.1fs (%s/sec), %d failed, %d broken links",
            self.stats.pages_checked,
            time.monotonic() - self.stats.started_at,
            self.stats.rate(),
            len(self.failed_pages),
            len(self.broken_links),
        )
        self.state = CrawlState.DONE
        return self.snapshot()

    def snapshot(self) -> CrawlReport:
        checked = self.visited.snapshot()
        failed_urls = {page.url for page in self.failed_pages}
        return CrawlReport(
            base_url=self.base_url,
            visited_urls=tuple(url for url in checked if url not in failed_urls),
            failed_pages=tuple(self.failed_pages),
            broken_links=tuple(self.broken_links),
            checked_urls=checked,
        )

    def _next_batch(self) -> List[str]:
        """Pop up to ``max_concurrent`` URLs that still need fetching and mark them visited."""
        batch: List[str] = []
        while len(batch) < self.config.max_concurrent:
            if self.stats.iterations >= self.config.max_iterations:
                if self.frontier:
                    LOGGER.warning(
                        "Stopping crawl after %d iterations with %d URLs still queued",
                        self.stats.iterations,
                        len(self.frontier),
                    )
                self.state = CrawlState.DRAINING
                break

            url = self.frontier.pop()
            if url is None:
                break
            self.stats.iterations += 1

            if is_excluded(url, self.config.exclude_patterns, self.config.include_patterns):
                LOGGER.debug("Excluded: %s", url)
                continue
            if not self.visited.add_if_new(url):
                continue

            self.stats.pages_checked += 1
            batch.append(url)
        return batch

    def handle_outcome(self, url: str, outcome: FetchOutcome) -> None:
        """Record one fetch outcome and queue whatever it leads to."""
        new_links = 0
        match outcome:
            case Success(body=body) if body and outcome.is_html:
                LOGGER.debug("✓ %s (%s)", url, outcome.status)
                new_links = self._enqueue_links(url, body)
            case Success():
                LOGGER.debug("✓ %s (%s), nothing to parse", url, outcome.status)
            case Redirect(location=None):
                LOGGER.debug("%s answered %s without a Location header", url, outcome.status)
            case Redirect(location=location):
                self.stats.redirects += 1
                LOGGER.debug("→ %s redirects to %s (%s)", url, location, outcome.status)
                new_links = self._enqueue_redirect(url, location)
            case HTTPFailure(status=status, message=message):
                LOGGER.debug("✗ %s (%s)", url, status)
                self._record_failure(FailedPage(url=url, status=status, error=message))
            case TransportException(message=message):
                LOGGER.debug("✗ %s - Exception: %s", url, message)
                self._record_failure(FailedPage(url=url, status=EXCEPTION_STATUS, error=message))

        if self.config.verbose:
            print_scan_line(url, outcome, new_links)
            print_progress(self.stats, len(self.frontier))

    def _enqueue_links(self, page_url: str, html: str) -> int:
        extraction = extract_links(page_url, html, self.config, base_host=self.base_host)
        self.broken_links.extend(extraction.broken_links)
        queued = self.frontier.push_many(extraction.candidates)
        self.stats.links_discovered += queued
        LOGGER.debug("Found %d new links on %s", queued, page_url)
        return queued

    def _enqueue_redirect(self, url: str, location: str) -> int:
        try:
            target = resolve(url, location)
        except InvalidURL as exc:
            self.broken_links.append(BrokenLink(found_on=url, broken_link=location, error=str(exc)))
            return 0

        if not is_http_url(target):
            LOGGER.debug("Non-HTTP redirect target (skipped): %s", target)
            return 0
        if not self.config.follow_external_links and not is_internal(target, self.base_host):
            LOGGER.debug("External redirect target (skipped): %s", target)
            return 0
        return 1 if self.frontier.push(target) else 0

    def _record_failure(self, failure: FailedPage) -> None:
        self.failed_pages.append(failure)
        self.stats.failures += 1


def crawl(
    base_url: Optional[str] = None,
    config: Optional[CrawlConfig] = None,
    *,
    seed_provider: Optional[SeedProvider] = None,
    fetcher: Optional[Fetcher] = None,
    render: bool = True,
    **options,
) -> CrawlReport:
    """
    Crawl a site and report failed pages and broken links.

    Args:
        base_url: The URL to start crawling from. Falls back to
                  ``options["base_url"]`` and then ``config.base_url``.
        config: Base configuration; ``default_config()`` when omitted.
        seed_provider: Optional callable returning extra seed URLs. Failures
                       are logged and the crawl continues from the base URL.
        fetcher: Fetcher to use instead of one built from the config.
        render: Whether to render the report in ``config.output_format``.
        **options: Any CrawlConfig field, overriding ``config``.

    Returns:
        The crawl report.

    Raises:
        MissingBaseURL: No base URL was given or configured.
        UnknownFormat: ``output_format`` is not console/json/csv. Raised
                       after crawling; the report is on the exception.
    """
    config = (config or default_config()).with_overrides(**options)
    if base_url:
        config = config.with_overrides(base_url=base_url)
    if not config.base_url:
        raise MissingBaseURL()

    report = Crawler(config, seed_provider=seed_provider, fetcher=fetcher).run()
    if render:
        report.render(config.output_format, config.output_file)
    return report

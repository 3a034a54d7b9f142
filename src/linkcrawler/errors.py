"""
Exception types raised by the link crawler.

Per-page and per-link problems never surface as exceptions from a crawl;
they are captured into the report. Only configuration-level errors propagate.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from linkcrawler.report import CrawlReport


class LinkCrawlerError(Exception):
    """Base class for all linkcrawler errors."""


class InvalidURL(LinkCrawlerError):
    """An href could not be parsed as a URI reference."""

    def __init__(self, href: str, reason: str) -> None:
        super().__init__(f"Invalid URI: {reason}")
        self.href = href
        self.reason = reason


class MissingBaseURL(LinkCrawlerError):
    """No base URL was passed to the entry point or configured."""

    def __init__(self) -> None:
        super().__init__("Base URL is required")


class UnknownFormat(LinkCrawlerError):
    """Report output format outside console/json/csv."""

    def __init__(self, fmt: object, report: Optional["CrawlReport"] = None) -> None:
        super().__init__(f"Unknown format: {fmt}")
        self.format = fmt
        # Crawl data survives the failed render.
        self.report = report


class ConfigError(LinkCrawlerError, ValueError):
    """Invalid configuration value or configuration file."""

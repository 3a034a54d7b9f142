"""
Crawl report: the frozen result of a crawl and its console/JSON/CSV renderings.
"""
from __future__ import annotations

import csv
import json
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple, Union

from linkcrawler.config import OutputFormat
from linkcrawler.errors import UnknownFormat
from linkcrawler.urls import host_of

LOGGER = logging.getLogger(__name__)

# Status recorded for fetches that never produced an HTTP response
EXCEPTION_STATUS = "exception"


def utc_now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(frozen=True, slots=True)
class FailedPage:
    """A queued URL whose fetch failed."""
    url: str
    status: Union[int, str]
    error: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "status": self.status, "error": self.error, "timestamp": self.timestamp}


@dataclass(frozen=True, slots=True)
class BrokenLink:
    """An href that could not be resolved into a URL."""
    found_on: str
    broken_link: str
    error: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found_on": self.found_on,
            "broken_link": self.broken_link,
            "error": self.error,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class Summary:
    pages_checked: int
    failed_pages: int
    broken_links: int
    healthy: bool
    timestamp: str
    errors_by_status: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages_checked": self.pages_checked,
            "failed_pages": self.failed_pages,
            "broken_links": self.broken_links,
            "healthy": self.healthy,
            "timestamp": self.timestamp,
            "errors_by_status": dict(self.errors_by_status),
        }


def generate_output_path(base_url: str, suffix: str, directory: Path = Path("crawls")) -> Path:
    """Generate output path: crawls/{hostname}_{datetime}.{suffix}"""
    hostname = host_of(base_url) or "unknown"
    # Sanitize hostname for filename (replace dots with underscores)
    hostname_safe = hostname.replace(".", "_").replace(":", "_")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{hostname_safe}_{timestamp}.{suffix}"


@dataclass(frozen=True)
class CrawlReport:
    """
    Snapshot of a finished crawl.

    ``visited_urls`` holds the pages that were fetched without failing
    (2xx and redirects); ``checked_urls`` every URL that was fetched, in
    crawl order. When ``checked_urls`` is not given it is derived from the
    visited and failed URLs.
    """

    base_url: str
    visited_urls: Tuple[str, ...] = ()
    failed_pages: Tuple[FailedPage, ...] = ()
    broken_links: Tuple[BrokenLink, ...] = ()
    checked_urls: Tuple[str, ...] = ()
    generated_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        object.__setattr__(self, "visited_urls", tuple(self.visited_urls))
        object.__setattr__(self, "failed_pages", tuple(self.failed_pages))
        object.__setattr__(self, "broken_links", tuple(self.broken_links))
        if not self.checked_urls:
            checked = dict.fromkeys(self.visited_urls)
            checked.update(dict.fromkeys(page.url for page in self.failed_pages))
            object.__setattr__(self, "checked_urls", tuple(checked))
        else:
            object.__setattr__(self, "checked_urls", tuple(self.checked_urls))

    @property
    def healthy(self) -> bool:
        return not self.failed_pages and not self.broken_links

    def errors_by_status(self) -> Dict[str, int]:
        """Failure counts keyed by HTTP status, with transport errors under 'connection_error'."""
        counts: Counter[str] = Counter()
        for page in self.failed_pages:
            key = "connection_error" if page.status == EXCEPTION_STATUS else str(page.status)
            counts[key] += 1
        return dict(sorted(counts.items()))

    def summary(self) -> Summary:
        return Summary(
            pages_checked=len(self.checked_urls),
            failed_pages=len(self.failed_pages),
            broken_links=len(self.broken_links),
            healthy=self.healthy,
            timestamp=self.generated_at,
            errors_by_status=self.errors_by_status(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary().to_dict(),
            "failed_pages": [page.to_dict() for page in self.failed_pages],
            "broken_links": [link.to_dict() for link in self.broken_links],
            "all_urls_checked": list(self.checked_urls),
        }

    def render(
        self,
        fmt: Union[OutputFormat, str],
        destination: Optional[Union[str, Path]] = None,
        stream: Optional[TextIO] = None,
    ) -> Union[str, Path]:
        """
        Render the report.

        Args:
            fmt: One of console, json or csv.
            destination: Output file for json/csv. CSV without a destination
                is written to an auto-named file under ``crawls/``.
            stream: Where console output (and json without a destination)
                goes. Defaults to stdout.

        Returns:
            The rendered text for console/json, the written path for csv.
        """
        try:
            fmt = OutputFormat.parse(fmt)
        except UnknownFormat as exc:
            exc.report = self
            raise

        out = stream if stream is not None else sys.stdout
        match fmt:
            case OutputFormat.CONSOLE:
                text = self.to_console_text()
                out.write(text)
                return text
            case OutputFormat.JSON:
                return self._render_json(destination, out)
            case OutputFormat.CSV:
                return self._render_csv(destination)

    def to_console_text(self) -> str:
        summary = self.summary()
        lines: List[str] = ["", "=" * 60, "CRAWL REPORT", "=" * 60, ""]

        lines.append(f"Pages checked:          {summary.pages_checked}")
        lines.append(f"Failed pages:           {summary.failed_pages}")
        lines.append(f"Broken links:           {summary.broken_links}")
        lines.append(f"Status:                 {'HEALTHY' if summary.healthy else 'ISSUES FOUND'}")

        if summary.errors_by_status:
            lines.append("")
            lines.append("Errors by type:")
            for error_type, count in summary.errors_by_status.items():
                label = "Connection errors" if error_type == "connection_error" else f"HTTP {error_type}"
                lines.append(f"  {label}: {count}")

        if self.failed_pages:
            lines.append("")
            lines.append("Failed pages:")
            for page in self.failed_pages:
                lines.append(f"  ✗ {page.url}")
                lines.append(f"      Status: {page.status} - {page.error}")
                lines.append(f"      Time: {page.timestamp}")

        if self.broken_links:
            lines.append("")
            lines.append("Broken links:")
            for link in self.broken_links:
                lines.append(f"  ✗ {link.broken_link}")
                lines.append(f"      Found on: {link.found_on}")
                lines.append(f"      Error: {link.error}")
                lines.append(f"      Time: {link.timestamp}")

        if summary.healthy:
            lines.append("")
            lines.append("All pages and links are working correctly.")

        lines.append("=" * 60)
        return "\n".join(lines) + "\n"

    def _render_json(self, destination: Optional[Union[str, Path]], out: TextIO) -> str:
        json_text = json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
        if destination:
            output_path = Path(destination)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(json_text, encoding="utf-8")
            LOGGER.info("JSON report saved to: %s", output_path)
        else:
            out.write(json_text + "\n")
        return json_text

    def _render_csv(self, destination: Optional[Union[str, Path]]) -> Path:
        output_path = Path(destination) if destination else generate_output_path(self.base_url, "csv")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        summary = self.summary()

        with output_path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(["SUMMARY"])
            writer.writerow(["Pages Checked", summary.pages_checked])
            writer.writerow(["Failed Pages", summary.failed_pages])
            writer.writerow(["Broken Links", summary.broken_links])
            writer.writerow(["Status", "HEALTHY" if summary.healthy else "ISSUES FOUND"])
            writer.writerow(["Timestamp", summary.timestamp])
            writer.writerow([])

            if self.failed_pages:
                writer.writerow(["FAILED PAGES"])
                writer.writerow(["URL", "Status", "Error", "Timestamp"])
                for page in self.failed_pages:
                    writer.writerow([page.url, page.status, page.error, page.timestamp])
                writer.writerow([])

            if self.broken_links:
                writer.writerow(["BROKEN LINKS"])
                writer.writerow(["Broken Link", "Found On", "Error", "Timestamp"])
                for link in self.broken_links:
                    writer.writerow([link.broken_link, link.found_on, link.error, link.timestamp])
                writer.writerow([])

            writer.writerow(["ALL URLS CHECKED"])
            for url in self.checked_urls:
                writer.writerow([url])

        LOGGER.info("CSV report saved to: %s", output_path)
        return output_path

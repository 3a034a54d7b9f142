"""
Seed-URL providers.

A seed provider is any callable taking the CrawlConfig and returning extra
URLs (absolute, or paths relative to the base URL) to queue next to the base URL.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Union

from linkcrawler.config import CrawlConfig
from linkcrawler.core import SeedProvider


def load_seed_file(path: Union[str, Path]) -> List[str]:
    """Read one URL or path per line, ignoring blank lines and '#' comments."""
    urls = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        urls.append(line)
    return urls


def seeds_from_file(path: Union[str, Path]) -> SeedProvider:
    """Seed provider backed by a text file, read when the crawl starts."""

    def provide(config: CrawlConfig) -> Iterable[str]:
        return load_seed_file(path)

    return provide


def static_seeds(urls: Iterable[str]) -> SeedProvider:
    """Seed provider returning a fixed list of URLs."""
    frozen = list(urls)

    def provide(config: CrawlConfig) -> Iterable[str]:
        return list(frozen)

    return provide

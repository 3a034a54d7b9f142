"""
Same-site link checker: breadth-first crawl from a base URL that reports
failed pages and unresolvable links as console text, JSON or CSV.
"""
__version__ = "1.0.0"

from linkcrawler.config import CrawlConfig, OutputFormat, default_config, load_config, save_config
from linkcrawler.core import Crawler, CrawlState, crawl, extract_links
from linkcrawler.errors import ConfigError, InvalidURL, LinkCrawlerError, MissingBaseURL, UnknownFormat
from linkcrawler.report import BrokenLink, CrawlReport, FailedPage, Summary
from linkcrawler.urls import is_excluded, resolve

__all__ = [
    "BrokenLink",
    "ConfigError",
    "CrawlConfig",
    "CrawlReport",
    "CrawlState",
    "Crawler",
    "FailedPage",
    "InvalidURL",
    "LinkCrawlerError",
    "MissingBaseURL",
    "OutputFormat",
    "Summary",
    "UnknownFormat",
    "crawl",
    "default_config",
    "extract_links",
    "is_excluded",
    "load_config",
    "resolve",
    "save_config",
]

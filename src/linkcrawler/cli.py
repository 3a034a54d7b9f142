"""
Command-line interface for the link crawler.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from linkcrawler import __version__
from linkcrawler.config import (
    CrawlConfig,
    OutputFormat,
    base_url_from_env,
    default_config,
    load_config,
)
from linkcrawler.core import crawl
from linkcrawler.errors import ConfigError, MissingBaseURL, UnknownFormat
from linkcrawler.seeds import seeds_from_file

LOGGER = logging.getLogger(__name__)

EXIT_HEALTHY = 0
EXIT_ISSUES = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def _load_env() -> None:
    """Load .env from the current working directory, if present."""
    local_env = Path.cwd() / ".env"
    if local_env.is_file():
        load_dotenv(local_env)


def setup_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    # Connection pool chatter drowns out per-URL lines at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkcrawler",
        description="Crawl every reachable page of a site and report failed pages and broken links.",
    )
    parser.add_argument("base_url", nargs="?", help="Base URL (e.g. https://example.com)")
    parser.add_argument("--config", help="YAML or JSON configuration file")
    parser.add_argument("--max-concurrent", type=int, help="Number of parallel fetches (default: 5)")
    parser.add_argument("--delay", type=float, help="Pause between requests in seconds (default: 0.1)")
    parser.add_argument(
        "--follow-external",
        action="store_true",
        default=None,
        help="Also check links that point to other hosts",
    )
    parser.add_argument("--user-agent", help="User-Agent header")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 30)")
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="REGEX",
        help="Skip URLs matching this regex (repeatable; replaces the default asset filter)",
    )
    parser.add_argument(
        "--include",
        action="append",
        metavar="REGEX",
        help="Only crawl URLs matching one of these regexes (repeatable)",
    )
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in OutputFormat],
        help="Report format (default: console)",
    )
    parser.add_argument("--out", help="Report file path (json/csv)")
    parser.add_argument("--max-iterations", type=int, help="Safety cap on processed queue entries (default: 1000)")
    parser.add_argument("--seeds-file", help="File with extra seed URLs or paths, one per line")
    parser.add_argument("--verbose", action="store_true", help="Show progress and debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> CrawlConfig:
    """Config file, then environment, then command-line flags."""
    config = load_config(args.config) if args.config else default_config()

    overrides: Dict[str, Any] = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    elif not config.base_url:
        env_url = base_url_from_env()
        if env_url:
            overrides["base_url"] = env_url

    if args.max_concurrent is not None:
        overrides["max_concurrent"] = args.max_concurrent
    if args.delay is not None:
        overrides["delay_between_requests"] = args.delay
    if args.follow_external is not None:
        overrides["follow_external_links"] = args.follow_external
    if args.user_agent is not None:
        overrides["user_agent"] = args.user_agent
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.exclude is not None:
        overrides["exclude_patterns"] = args.exclude
    if args.include is not None:
        overrides["include_patterns"] = args.include
    if args.format is not None:
        overrides["output_format"] = args.format
    if args.out is not None:
        overrides["output_file"] = args.out
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.verbose:
        overrides["verbose"] = True

    return config.with_overrides(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    args = build_parser().parse_args(argv)
    _load_env()
    setup_logging(verbose=args.verbose)

    try:
        config = build_config(args)
    except ConfigError as exc:
        LOGGER.error("Failed to build config: %s", exc)
        return EXIT_CONFIG_ERROR

    seed_provider = seeds_from_file(args.seeds_file) if args.seeds_file else None

    try:
        report = crawl(config=config, seed_provider=seed_provider)
    except UnknownFormat as exc:
        LOGGER.error("%s, falling back to console output", exc)
        if exc.report is not None:
            exc.report.render(OutputFormat.CONSOLE)
        return EXIT_CONFIG_ERROR
    except (MissingBaseURL, ConfigError) as exc:
        LOGGER.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        LOGGER.error("Interrupted by user")
        return EXIT_INTERRUPTED

    return EXIT_HEALTHY if report.healthy else EXIT_ISSUES


if __name__ == "__main__":
    raise SystemExit(main())

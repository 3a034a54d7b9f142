"""
Crawl configuration: an immutable value constructed once per crawl,
with JSON/YAML load/save helpers.
"""
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml

from linkcrawler.errors import ConfigError, UnknownFormat

DEFAULT_USER_AGENT = "LinkCrawler/1.0"
ENV_BASE_URL = "LINKCRAWLER_BASE_URL"
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

# Static assets that are not worth checking as pages
SKIP_EXTENSIONS: frozenset[str] = frozenset((
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    ".pdf", ".zip", ".rar", ".7z", ".tar", ".gz",
    ".mp4", ".mp3", ".wav", ".webm",
    ".css", ".js", ".map", ".ico",
    ".woff", ".woff2", ".ttf", ".eot",
))

DEFAULT_EXCLUDE_PATTERN: re.Pattern[str] = re.compile(
    r"\.(" + "|".join(sorted(re.escape(ext[1:]) for ext in SKIP_EXTENSIONS)) + r")$",
    re.IGNORECASE,
)

PatternLike = Union[str, re.Pattern[str], Mapping[str, Any]]


class OutputFormat(str, Enum):
    """Report encodings."""

    CONSOLE = "console"
    JSON = "json"
    CSV = "csv"

    @classmethod
    def parse(cls, value: Union["OutputFormat", str]) -> "OutputFormat":
        """Return the matching format or raise UnknownFormat."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownFormat(value) from None


def compile_pattern(value: PatternLike) -> re.Pattern[str]:
    """
    Compile one exclude/include pattern.

    Accepts a compiled regex, a regex string, or a mapping
    ``{"pattern": "...", "ignore_case": true}`` as written in config files.
    """
    if isinstance(value, re.Pattern):
        return value
    flags = 0
    if isinstance(value, Mapping):
        if "pattern" not in value:
            raise ConfigError(f"Pattern mapping missing 'pattern' key: {dict(value)!r}")
        if value.get("ignore_case"):
            flags |= re.IGNORECASE
        value = value["pattern"]
    if not isinstance(value, str):
        raise ConfigError(f"Invalid pattern: {value!r}")
    try:
        return re.compile(value, flags)
    except re.error as exc:
        raise ConfigError(f"Invalid regular expression {value!r}: {exc}") from exc


def compile_patterns(values: Optional[Iterable[PatternLike]]) -> Tuple[re.Pattern[str], ...]:
    if values is None:
        return ()
    if isinstance(values, (str, re.Pattern)):
        values = [values]
    return tuple(compile_pattern(value) for value in values)


def _pattern_to_json(pattern: re.Pattern[str]) -> Union[str, Dict[str, Any]]:
    if pattern.flags & re.IGNORECASE:
        return {"pattern": pattern.pattern, "ignore_case": True}
    return pattern.pattern


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Invalid bool for '{key}': {value!r}")


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Immutable settings for one crawl."""

    base_url: Optional[str] = None
    max_concurrent: int = 5
    delay_between_requests: float = 0.1
    follow_external_links: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    exclude_patterns: Tuple[re.Pattern[str], ...] = (DEFAULT_EXCLUDE_PATTERN,)
    include_patterns: Tuple[re.Pattern[str], ...] = ()
    # Kept verbatim when unrecognised so the failure surfaces at render time.
    output_format: Union[OutputFormat, str] = OutputFormat.CONSOLE
    output_file: Optional[str] = None
    max_iterations: int = 1000
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "exclude_patterns", compile_patterns(self.exclude_patterns))
        object.__setattr__(self, "include_patterns", compile_patterns(self.include_patterns))
        try:
            object.__setattr__(self, "output_format", OutputFormat.parse(self.output_format))
        except UnknownFormat:
            pass

        if self.base_url is not None:
            object.__setattr__(self, "base_url", self.base_url.strip() or None)
        if self.output_file is not None:
            object.__setattr__(self, "output_file", str(self.output_file))

        if self.max_concurrent < 1:
            raise ConfigError("max_concurrent must be >= 1")
        if self.delay_between_requests < 0:
            raise ConfigError("delay_between_requests must be >= 0")
        if self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be >= 1")

    @classmethod
    def option_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def with_overrides(self, **options: Any) -> "CrawlConfig":
        """Return a copy with the given options replaced."""
        unknown = sorted(set(options) - set(self.option_names()))
        if unknown:
            raise ConfigError(f"Unknown configuration option(s): {', '.join(unknown)}")
        if not options:
            return self
        return replace(self, **options)

    def to_dict(self) -> Dict[str, Any]:
        fmt = self.output_format
        return {
            "base_url": self.base_url,
            "max_concurrent": self.max_concurrent,
            "delay_between_requests": self.delay_between_requests,
            "follow_external_links": self.follow_external_links,
            "user_agent": self.user_agent,
            "timeout": self.timeout,
            "exclude_patterns": [_pattern_to_json(p) for p in self.exclude_patterns],
            "include_patterns": [_pattern_to_json(p) for p in self.include_patterns],
            "output_format": fmt.value if isinstance(fmt, OutputFormat) else fmt,
            "output_file": self.output_file,
            "max_iterations": self.max_iterations,
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed mapping, filling in defaults."""
        options: Dict[str, Any] = dict(payload)

        for key in ("max_concurrent", "max_iterations"):
            if key in options:
                options[key] = _as_int(options[key], key)
        for key in ("delay_between_requests", "timeout"):
            if key in options:
                options[key] = _as_float(options[key], key)
        for key in ("follow_external_links", "verbose"):
            if key in options:
                options[key] = _as_bool(options[key], key)
        for key in ("exclude_patterns", "include_patterns"):
            if key in options and options[key] is not None and not isinstance(options[key], (list, tuple)):
                raise ConfigError(f"'{key}' must be a list of patterns")

        return default_config().with_overrides(**options)


def default_config() -> CrawlConfig:
    """Return the default crawl configuration."""
    return CrawlConfig()


def base_url_from_env() -> Optional[str]:
    """Base URL from the LINKCRAWLER_BASE_URL environment variable, if set."""
    value = os.environ.get(ENV_BASE_URL, "").strip()
    return value or None


def _load_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: Union[str, Path]) -> CrawlConfig:
    """Load CrawlConfig from a JSON/YAML file."""
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    try:
        if suffix == ".json":
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        else:
            payload = _load_yaml(config_path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read config {config_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: Union[str, Path]) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""
    out_path = Path(path)
    suffix = out_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.to_dict()
    if suffix == ".json":
        out_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    else:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")

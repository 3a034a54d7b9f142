"""Tests for linkcrawler.config module."""

from __future__ import annotations

import json
import re

import pytest

from linkcrawler.config import (
    DEFAULT_EXCLUDE_PATTERN,
    DEFAULT_USER_AGENT,
    ENV_BASE_URL,
    CrawlConfig,
    OutputFormat,
    base_url_from_env,
    compile_pattern,
    default_config,
    load_config,
    save_config,
)
from linkcrawler.errors import ConfigError, UnknownFormat


class TestDefaults:
    def test_default_values(self):
        config = default_config()
        assert config.base_url is None
        assert config.max_concurrent == 5
        assert config.delay_between_requests == 0.1
        assert config.follow_external_links is False
        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.timeout == 30.0
        assert config.exclude_patterns == (DEFAULT_EXCLUDE_PATTERN,)
        assert config.include_patterns == ()
        assert config.output_format is OutputFormat.CONSOLE
        assert config.output_file is None
        assert config.max_iterations == 1000

    def test_factory_returns_fresh_values(self):
        assert default_config() == default_config()
        assert default_config() is not default_config()

    @pytest.mark.parametrize("path", ["/files/report.PDF", "/img/logo.png", "/a.tar", "/static/app.js"])
    def test_default_exclude_matches_assets(self, path):
        assert DEFAULT_EXCLUDE_PATTERN.search(f"http://x.com{path}")

    @pytest.mark.parametrize("path", ["/about", "/docs/pdf-guide", "/"])
    def test_default_exclude_keeps_pages(self, path):
        assert not DEFAULT_EXCLUDE_PATTERN.search(f"http://x.com{path}")

    def test_config_is_immutable(self):
        config = default_config()
        with pytest.raises(AttributeError):
            config.timeout = 5  # type: ignore[misc]


class TestOverrides:
    def test_patterns_compiled_from_strings(self):
        config = default_config().with_overrides(exclude_patterns=[r"/admin"], include_patterns=r"/products")
        assert [p.pattern for p in config.exclude_patterns] == ["/admin"]
        assert [p.pattern for p in config.include_patterns] == ["/products"]

    def test_original_untouched(self):
        base = default_config()
        base.with_overrides(timeout=3)
        assert base.timeout == 30.0

    def test_unknown_option(self):
        with pytest.raises(ConfigError, match="bogus"):
            default_config().with_overrides(bogus=1)

    def test_format_string_normalized(self):
        config = default_config().with_overrides(output_format="JSON")
        assert config.output_format is OutputFormat.JSON

    def test_unknown_format_kept_for_render_time(self):
        config = default_config().with_overrides(output_format="xml")
        assert config.output_format == "xml"

    @pytest.mark.parametrize(
        "options",
        [
            {"max_concurrent": 0},
            {"delay_between_requests": -1},
            {"timeout": 0},
            {"max_iterations": 0},
        ],
    )
    def test_validation(self, options):
        with pytest.raises(ConfigError):
            default_config().with_overrides(**options)

    def test_invalid_regex(self):
        with pytest.raises(ConfigError):
            default_config().with_overrides(exclude_patterns=["(unclosed"])


class TestCompilePattern:
    def test_mapping_with_ignore_case(self):
        pattern = compile_pattern({"pattern": r"/ADMIN", "ignore_case": True})
        assert pattern.search("http://x.com/admin")

    def test_compiled_passthrough(self):
        compiled = re.compile("x")
        assert compile_pattern(compiled) is compiled

    def test_mapping_without_pattern(self):
        with pytest.raises(ConfigError):
            compile_pattern({"ignore_case": True})


class TestOutputFormat:
    def test_parse(self):
        assert OutputFormat.parse("csv") is OutputFormat.CSV
        assert OutputFormat.parse(OutputFormat.JSON) is OutputFormat.JSON

    def test_parse_unknown(self):
        with pytest.raises(UnknownFormat):
            OutputFormat.parse("yaml")


class TestLoadSave:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "crawler.yaml"
        path.write_text(
            "\n".join(
                [
                    "base_url: http://localhost:3000",
                    "max_concurrent: 2",
                    "delay_between_requests: 0",
                    "follow_external_links: true",
                    "exclude_patterns:",
                    "  - /admin",
                    "  - pattern: '\\.(pdf|zip)$'",
                    "    ignore_case: true",
                    "include_patterns: []",
                    "output_format: json",
                ]
            ),
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.base_url == "http://localhost:3000"
        assert config.max_concurrent == 2
        assert config.delay_between_requests == 0.0
        assert config.follow_external_links is True
        assert config.exclude_patterns[1].search("http://x.com/a.PDF")
        assert config.output_format is OutputFormat.JSON

    def test_load_json(self, tmp_path):
        path = tmp_path / "crawler.json"
        path.write_text(json.dumps({"base_url": "http://example.com", "timeout": 5}), encoding="utf-8")
        config = load_config(path)
        assert config.timeout == 5.0
        assert config.exclude_patterns == (DEFAULT_EXCLUDE_PATTERN,)

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == default_config()

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "config.toml")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "crawler.json"
        path.write_text(json.dumps({"max_depth": 3}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_bad_bool(self, tmp_path):
        path = tmp_path / "crawler.json"
        path.write_text(json.dumps({"follow_external_links": "yes"}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    @pytest.mark.parametrize("name", ["saved.yaml", "saved.json"])
    def test_round_trip(self, tmp_path, name):
        config = CrawlConfig(
            base_url="http://example.com",
            exclude_patterns=[r"/admin", {"pattern": "secret", "ignore_case": True}],
            include_patterns=[r"/docs"],
            output_format="csv",
            output_file="out.csv",
        )
        path = tmp_path / name
        save_config(config, path)
        loaded = load_config(path)
        assert loaded.to_dict() == config.to_dict()


class TestEnvironment:
    def test_base_url_from_env(self, monkeypatch):
        monkeypatch.setenv(ENV_BASE_URL, " http://staging.example.com ")
        assert base_url_from_env() == "http://staging.example.com"

    def test_base_url_from_env_unset(self, monkeypatch):
        monkeypatch.delenv(ENV_BASE_URL, raising=False)
        assert base_url_from_env() is None

"""Tests for linkcrawler.fetcher module."""

from __future__ import annotations

import pytest
import requests
import urllib3

from linkcrawler.config import default_config
from linkcrawler.fetcher import (
    Fetcher,
    HTTPFailure,
    Redirect,
    Success,
    TransportException,
    classify_response,
)

from conftest import make_response


class TestClassifyResponse:
    def test_success(self):
        response = make_response("http://x.com", 200, "<html></html>", {"Content-Type": "text/html"})
        outcome = classify_response("http://x.com", response)
        assert outcome == Success(url="http://x.com", status=200, body="<html></html>", content_type="text/html")
        assert outcome.is_html

    @pytest.mark.parametrize("status", [301, 302, 307, 308])
    def test_redirect(self, status):
        response = make_response("http://x.com/old", status, headers={"Location": "/new"})
        outcome = classify_response("http://x.com/old", response)
        assert outcome == Redirect(url="http://x.com/old", status=status, location="/new")

    def test_redirect_without_location(self):
        outcome = classify_response("http://x.com/old", make_response("http://x.com/old", 304))
        assert isinstance(outcome, Redirect)
        assert outcome.location is None

    @pytest.mark.parametrize("status,message", [(404, "Not Found"), (500, "Internal Server Error"), (199, "")])
    def test_failure(self, status, message):
        outcome = classify_response("http://x.com", make_response("http://x.com", status, reason=message))
        assert isinstance(outcome, HTTPFailure)
        assert outcome.status == status
        assert outcome.message == (message or f"HTTP {status}")

    def test_non_html_success(self):
        response = make_response("http://x.com/feed", 200, "{}", {"Content-Type": "application/json"})
        assert not classify_response("http://x.com/feed", response).is_html

    def test_missing_content_type_is_parsed(self):
        assert classify_response("http://x.com", make_response("http://x.com", 200, "<a href='/'>x</a>")).is_html


class TestFetcher:
    def test_request_options(self, site):
        site.page("http://x.com")
        config = default_config().with_overrides(timeout=7, user_agent="Checker/2.0")
        with Fetcher(config) as fetcher:
            outcome = fetcher.fetch("http://x.com")

        assert isinstance(outcome, Success)
        call = site.calls[0]
        assert call["timeout"] == 7
        assert call["allow_redirects"] is False
        assert call["headers"]["User-Agent"] == "Checker/2.0"

    def test_redirect_not_followed(self, site):
        site.redirect("http://x.com/old", "/new", status=302)
        site.page("http://x.com/new")
        outcome = Fetcher(default_config()).fetch("http://x.com/old")
        assert outcome == Redirect(url="http://x.com/old", status=302, location="/new")
        assert site.requests == ["http://x.com/old"]

    def test_transport_exception(self, site):
        site.fail("http://down.example", requests.ConnectionError("Connection refused"))
        outcome = Fetcher(default_config()).fetch("http://down.example")
        assert outcome == TransportException(
            url="http://down.example", message="Connection refused", error_type="ConnectionError"
        )

    def test_timeout_is_transport_exception(self, site):
        site.fail("http://slow.example", requests.Timeout("read timed out"))
        outcome = Fetcher(default_config()).fetch("http://slow.example")
        assert isinstance(outcome, TransportException)
        assert outcome.error_type == "Timeout"

    def test_unparsable_host_is_transport_exception(self, site):
        site.fail("http://a..external.com", urllib3.exceptions.LocationParseError("a..external.com"))
        outcome = Fetcher(default_config()).fetch("http://a..external.com")
        assert isinstance(outcome, TransportException)
        assert outcome.error_type == "LocationParseError"
        assert "a..external.com" in outcome.message

    def test_session_reused_per_thread(self, site):
        site.page("http://x.com")
        fetcher = Fetcher(default_config())
        fetcher.fetch("http://x.com")
        fetcher.fetch("http://x.com")
        assert len(fetcher._sessions) == 1
        fetcher.close()
        assert fetcher._sessions == []

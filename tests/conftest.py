"""Shared fixtures: an in-memory site served through a patched requests.Session.get."""

from __future__ import annotations

from http import HTTPStatus
from typing import Dict, List, Optional, Union

import pytest
import requests


def make_response(
    url: str,
    status: int = 200,
    body: str = "",
    headers: Optional[Dict[str, str]] = None,
    reason: Optional[str] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8")
    response._content_consumed = True
    response.encoding = "utf-8"
    response.url = url
    if reason is None:
        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = ""
    response.reason = reason
    response.headers.update(headers or {})
    return response


def html_page(*hrefs: str) -> str:
    links = "\n".join(f'<a href="{href}">link</a>' for href in hrefs)
    return f"<html><body>\n{links}\n</body></html>"


Route = Union[requests.Response, Exception]


class FakeSite:
    """Routes GET requests by exact URL; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[str] = []
        self.calls: List[dict] = []

    def page(self, url: str, *hrefs: str, status: int = 200) -> None:
        self.routes[url] = make_response(
            url, status=status, body=html_page(*hrefs), headers={"Content-Type": "text/html; charset=utf-8"}
        )

    def status(self, url: str, status: int, body: str = "") -> None:
        self.routes[url] = make_response(url, status=status, body=body, headers={"Content-Type": "text/plain"})

    def redirect(self, url: str, location: Optional[str], status: int = 301) -> None:
        headers = {"Location": location} if location is not None else {}
        self.routes[url] = make_response(url, status=status, headers=headers)

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def get(self, session: requests.Session, url: str, **kwargs) -> requests.Response:
        self.requests.append(url)
        self.calls.append({"url": url, "headers": dict(session.headers), **kwargs})
        route = self.routes.get(url)
        if route is None:
            return make_response(url, status=404, body="Not Found")
        if isinstance(route, Exception):
            raise route
        return route


@pytest.fixture
def site(monkeypatch) -> FakeSite:
    fake = FakeSite()

    def fake_get(self, url, **kwargs):
        return fake.get(self, url, **kwargs)

    monkeypatch.setattr(requests.Session, "get", fake_get)
    return fake


@pytest.fixture
def example_site(site: FakeSite) -> FakeSite:
    """Homepage linking to a working page, a 404 and an external host."""
    site.page("http://example.com", "/about", "/contact", "http://external.com")
    site.page("http://example.com/about", "/")
    site.status("http://example.com/contact", 404, "Not Found")
    site.page("http://external.com", "/")
    return site

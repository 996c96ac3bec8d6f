import os
import sys

import pytest
import requests

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

import statmirror  # noqa: E402

STAT = "https://stat.example.test"
PERIOD_URL = f"{STAT}/example.com/202601/"
ROOT_URL = PERIOD_URL + "awstats.example.com.html"


class FakeResponse:
    def __init__(self, status_code=200, body=b"", reason="OK", encoding="utf-8"):
        if isinstance(body, str):
            body = body.encode(encoding or "utf-8")
        self.status_code = status_code
        self.content = body
        self.reason = reason
        self.encoding = encoding
        self.apparent_encoding = "utf-8"
        self.headers = {}

    @property
    def text(self):
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class FakeSession:
    """In-memory stand-in for requests.Session; unknown URLs answer 404."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.headers = {}

    def add(self, url, body="", status=200, reason="OK", encoding="utf-8"):
        self.routes[url] = FakeResponse(status, body, reason, encoding)

    def fail(self, url, exc):
        self.routes[url] = exc

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, dict(headers or {})))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, b"missing", reason="Not Found")
        if isinstance(route, Exception):
            raise route
        return route

    def count(self, url):
        return sum(1 for u, _ in self.calls if u == url)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return statmirror.FetchClient("sid=abc123", session=session)


@pytest.fixture
def settings(tmp_path):
    return statmirror.Settings(
        output_dir=str(tmp_path / "output"),
        stat_host="stat.example.test",
        overview_url=STAT + "/",
        delay=0,
    )


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")

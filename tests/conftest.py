"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all tests in the test suite: sample feed markup, a scriptable in-memory
browser session, an in-memory blob store and a mock Supabase client.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from feedharvest.core.config import DEFAULT_RATE_LIMIT_TEXT
from feedharvest.core.error_logger import ErrorLogger
from feedharvest.core.errors import BlobStoreError
from feedharvest.crawler.page_scripts import BANNER_TEXTS_JS, BODY_TEXT_JS, COLLECT_ITEMS_JS
from feedharvest.db.record_store import JsonlRecordStore, RecordStores
from feedharvest.storage.blob_store import NamedFile


# ============================================================================
# Paths and Directories
# ============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def test_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "test_output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


# ============================================================================
# Sample Data Fixtures
# ============================================================================

def make_item(
    item_id: str = "123",
    handle: str = "alice",
    name: str = "Alice Liddell",
    body: str = "<span>hello</span>",
    counters: Sequence[str] = ("3", "10", "1", "50"),
    posted: str = "2023-05-01T12:00:00.000Z",
    status_link: bool = True,
) -> str:
    """Build the outerHTML of one rendered feed item."""
    status = (
        f'<a href="/{handle}/status/{item_id}" dir="ltr" aria-label="May 1">'
        f'<time datetime="{posted}">May 1</time></a>'
        if status_link
        else '<span>Promoted</span>'
    )
    counter_spans = "".join(
        f'<div><span data-testid="app-text-transition-container"><span>{c}</span></span></div>'
        for c in counters
    )
    return (
        f'<article aria-labelledby="id__{item_id}" role="article" data-testid="tweet">'
        f'<div class="css-1dbjc4n">'
        f'<img alt="" draggable="true" src="https://pbs.twimg.com/profile_images/1/{handle}_normal.jpg">'
        f'<a role="link" href="/{handle}"><span>{name}</span></a>'
        f'<a role="link" href="/{handle}" tabindex="-1"><span>@{handle}</span></a>'
        f'{status}'
        f'</div>'
        f'<div data-testid="tweetText" lang="en">{body}</div>'
        f'<div role="group">{counter_spans}</div>'
        f'</article>'
    )


@pytest.fixture
def sample_item_html() -> str:
    """Return one ordinary feed item."""
    return make_item()


@pytest.fixture
def ad_item_html() -> str:
    """Return a promoted item (no status link)."""
    return make_item(item_id="999", handle="brand", name="Brand", status_link=False)


@pytest.fixture
def item_factory():
    """Return the feed item builder."""
    return make_item


# ============================================================================
# Fakes
# ============================================================================

Iteration = Tuple[List[str], List[str]]


class FakeBrowserSession:
    """
    Scriptable BrowserSession.

    ``pages`` lists (banner_texts, item_markups) per scroll iteration. Once
    the script runs out the feed shows the rate-limit banner.
    """

    def __init__(
        self,
        pages: Optional[List[Iteration]] = None,
        url: str = "about:blank",
        present: Sequence[str] = (),
        url_after_password: Optional[str] = None,
        body_text: str = "",
        password_selector: str = 'input[name="password"]',
        fail_navigate: bool = False,
    ):
        self.pages = list(pages or [])
        self.present = set(present)
        self.url_after_password = url_after_password
        self.body_text = body_text
        self.password_selector = password_selector
        self.fail_navigate = fail_navigate
        self.calls: List[Tuple[Any, ...]] = []
        self.closed = False
        self.iteration = 0
        self._url = url
        self._last_typed: Optional[str] = None
        self._current: Iteration = ([], [])

    @property
    def url(self) -> str:
        return self._url

    async def navigate(self, url: str, timeout_ms: int = 45_000) -> None:
        self.calls.append(("navigate", url))
        if self.fail_navigate:
            raise RuntimeError("net::ERR_CONNECTION_RESET")
        self._url = url

    async def wait_for(self, selector: str, timeout_ms: int = 30_000, visible: bool = False) -> bool:
        self.calls.append(("wait_for", selector))
        return selector in self.present

    async def type(self, selector: str, text: str) -> None:
        self.calls.append(("type", selector, text))
        self._last_typed = selector

    async def press_enter(self) -> None:
        self.calls.append(("press_enter",))
        if self._last_typed == self.password_selector and self.url_after_password:
            self._url = self.url_after_password

    async def evaluate(self, script: str) -> Any:
        if script == BANNER_TEXTS_JS:
            if self.iteration < len(self.pages):
                self._current = self.pages[self.iteration]
            else:
                self._current = ([DEFAULT_RATE_LIMIT_TEXT], [])
            self.iteration += 1
            return list(self._current[0])
        if script == COLLECT_ITEMS_JS:
            return list(self._current[1])
        if script == BODY_TEXT_JS:
            return self.body_text
        raise AssertionError(f"unexpected script: {script[:60]!r}")

    async def scroll_by_viewport(self) -> None:
        self.calls.append(("scroll",))

    async def set_viewport(self, width: int, height: int) -> None:
        self.calls.append(("viewport", width, height))

    async def pause(self, ms: int) -> None:
        self.calls.append(("pause", ms))

    async def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True

    def typed(self) -> List[Tuple[str, str]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "type"]


class MemoryBlobStore:
    """BlobStore keeping uploads in memory; the first ``fail_times`` puts fail."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.put_calls = 0
        self.uploads: Dict[str, Dict[str, bytes]] = {}

    async def put(self, files: Sequence[NamedFile]) -> str:
        self.put_calls += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise BlobStoreError("simulated upload failure")
        cid = f"bafytest{len(self.uploads) + 1}"
        self.uploads[cid] = {f.name: f.data for f in files}
        return cid

    def json_file(self, cid: str, name: str = "data.json") -> Any:
        return json.loads(self.uploads[cid][name])


@pytest.fixture
def fake_browser_factory():
    """Return the FakeBrowserSession class for per-test scripting."""
    return FakeBrowserSession


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def stores() -> RecordStores:
    """In-memory records / cids / proofs collections."""
    return RecordStores(
        records=JsonlRecordStore(),
        cids=JsonlRecordStore(),
        proofs=JsonlRecordStore(),
    )


# ============================================================================
# Mock Fixtures
# ============================================================================

class MockResult:
    def __init__(self, data):
        self.data = data


class MockTable:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.fail_writes = 0


class MockQuery:
    """Chainable query builder over one MockTable."""

    def __init__(self, table: MockTable):
        self._table = table
        self._filters: List[Tuple[str, Any]] = []
        self._limit: Optional[int] = None
        self._write: Optional[Tuple[str, Dict[str, Any]]] = None

    def select(self, *args):
        return self

    def eq(self, field, value):
        self._filters.append((field, value))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def upsert(self, row, on_conflict=None):
        self._write = ("upsert", dict(row))
        return self

    def insert(self, row):
        self._write = ("insert", dict(row))
        return self

    def execute(self):
        if self._write is not None:
            if self._table.fail_writes > 0:
                self._table.fail_writes -= 1
                raise ConnectionError("simulated database outage")
            op, row = self._write
            if op == "upsert":
                self._table.rows = [r for r in self._table.rows if r.get("id") != row.get("id")]
            self._table.rows.append(row)
            return MockResult([row])

        rows = [r for r in self._table.rows if all(r.get(f) == v for f, v in self._filters)]
        if self._limit is not None:
            rows = rows[: self._limit]
        return MockResult(rows)


class MockClient:
    def __init__(self):
        self.tables: Dict[str, MockTable] = {}

    def table(self, name: str) -> MockQuery:
        return MockQuery(self.tables.setdefault(name, MockTable()))

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(name, MockTable()).rows


@pytest.fixture
def mock_supabase_client(monkeypatch):
    """Mock Supabase client for testing."""
    mock_client = MockClient()

    # Monkeypatch the client singleton
    import feedharvest.db.supabase_client as supabase_module
    monkeypatch.setattr(supabase_module, "_client", mock_client)

    return mock_client


@pytest.fixture
def error_logger(mock_supabase_client, tmp_path: Path) -> ErrorLogger:
    """ErrorLogger writing into the mock client's error table."""
    return ErrorLogger(client=mock_supabase_client, fallback_dir=tmp_path / "errors")


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )

from urllib.parse import parse_qs

import httpx
import pytest

from legal_research.core.config import Settings
from legal_research.services.kanoon_client import IndianKanoonClient


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def form_of(request: httpx.Request) -> dict:
    """Decoded form body of a mocked request, one value per key."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def settings():
    return Settings(indian_kanoon_api_key="test-key", request_delay_ms=0, max_retries=3)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_client(settings, sleep):
    """Build a client whose HTTP traffic goes to `handler(request) -> httpx.Response`."""

    def _make(handler, settings_override=None, **kwargs):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("sleep", sleep)
        return IndianKanoonClient(settings_override or settings, http_client=http, **kwargs)

    return _make

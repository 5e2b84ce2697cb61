"""Root pytest configuration for manta-buckets tests."""
import httpx
import pytest
import pytest_asyncio

from manta_buckets.client import MantaBucketsClient
from manta_buckets.settings import Settings
from manta_buckets.storage.http_transport import HttpTransport

from tests.fakes.fake_service import FakeMantaBuckets


# Keep the real environment out of tests that load settings from env.
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically set up test environment variables."""
    monkeypatch.setenv("MANTA_URL", "http://localhost:8080")
    monkeypatch.setenv("MANTA_USER", "alice")
    monkeypatch.setenv("MANTA_TLS_INSECURE", "true")
    for key in ("MANTA_TIMEOUT", "MANTA_CONNECT_TIMEOUT", "MANTA_HTTP_RETRY"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(url="http://localhost:8080", user="alice", insecure=True)


@pytest.fixture
def fake_service():
    """Standard in-memory buckets service."""
    return FakeMantaBuckets(login="alice")


@pytest.fixture
def http_transport(settings, fake_service):
    """Real HttpTransport wired to the fake service through httpx.MockTransport."""
    return HttpTransport(settings, transport=httpx.MockTransport(fake_service.handler))


@pytest_asyncio.fixture
async def client(settings, http_transport):
    """Client talking to the fake service; closed after the test."""
    client = MantaBucketsClient(settings, transport=http_transport)
    yield client
    await client.close()
    await http_transport.aclose()

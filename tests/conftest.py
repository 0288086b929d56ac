import os
import sys

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from serper_mocks import ScriptedTransport
from webtools.config import Settings


@pytest.fixture
def scripted_transport(monkeypatch):
    """Factory that installs a ScriptedTransport in the client module."""
    import webtools.serper_client

    def install(*script):
        transport = ScriptedTransport(script)
        monkeypatch.setattr(webtools.serper_client.aiohttp, "ClientSession", transport)
        return transport

    return install


@pytest.fixture
def recorded_delays():
    """Collects backoff delays instead of sleeping."""
    delays = []

    async def fake_delay(seconds, abort=None):
        delays.append(seconds)

    fake_delay.delays = delays
    return fake_delay


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = {"serper_api_key": "test-key", "enabled": True, "max_results": 5, "timeout": 30}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def search_payload():
    return {
        "searchParameters": {"q": "python", "type": "search"},
        "organic": [
            {"title": "Python", "link": "https://python.org", "snippet": "The language", "position": 1},
            {"title": "Docs", "link": "https://docs.python.org", "snippet": "Documentation", "position": 2},
        ],
        "credits": 1,
    }


@pytest.fixture
def scrape_payload():
    return {
        "text": "hello world from the page",
        "metadata": {"title": "Example"},
        "credits": 2,
    }

import asyncio
import logging

import aiohttp
import pytest

from serper_mocks import MockResponse
from webtools.constants import SCRAPE_URL, SEARCH_URL
from webtools.exceptions import (
    WebToolCancelledError,
    WebToolClientError,
    WebToolConfigError,
    WebToolNetworkError,
    WebToolServerError,
    WebToolTimeoutError,
    WebToolValidationError,
)
from webtools.models import ClientConfig, SearchOptions
from webtools.serper_client import SerperClient, create_serper_client


def _client(recorded_delays=None, **overrides) -> SerperClient:
    client = create_serper_client("test-key", **overrides)
    if recorded_delays is not None:
        client._delay = recorded_delays
    return client


def _server_error():
    return MockResponse(status=500, json_data={"message": "backend exploded"}, reason="Internal Server Error")


# Construction

@pytest.mark.parametrize("api_key", ["", "   ", None])
def test_construction_rejects_missing_key(api_key):
    with pytest.raises(WebToolConfigError, match="API key is missing"):
        SerperClient(api_key)


def test_construction_merges_overrides_over_defaults():
    client = create_serper_client("test-key", timeout_ms=5000)
    assert client.config.timeout_ms == 5000
    assert client.config.max_retries == 3
    assert client.config.retry_delay_ms == 1000
    assert client.config.search_url == "https://google.serper.dev/search"
    assert client.config.scrape_url == "https://scrape.serper.dev"


@pytest.mark.asyncio
async def test_api_key_is_sent_but_never_changed(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={"organic": []}))
    client = SerperClient("secret-key", ClientConfig())

    await client.search("python")
    await client.search("rust")

    assert [call["headers"]["X-API-KEY"] for call in transport.calls] == ["secret-key", "secret-key"]
    assert transport.calls[0]["headers"]["Content-Type"] == "application/json"
    assert client._api_key == "secret-key"
    assert "secret-key" not in repr(client.config)


# Request bodies

@pytest.mark.asyncio
async def test_search_body_defaults(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={"organic": []}))

    result = await _client().search("  python asyncio  ")

    assert result == {"organic": []}
    assert transport.calls[0]["url"] == "https://google.serper.dev/search"
    assert transport.calls[0]["json"] == {"q": "python asyncio", "num": 10, "page": 1}


@pytest.mark.asyncio
async def test_search_body_with_options(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={}))

    await _client().search("news", SearchOptions(num=3, page=2, type="news"))

    assert transport.calls[0]["json"] == {"q": "news", "num": 3, "page": 2, "type": "news"}


@pytest.mark.asyncio
async def test_scrape_body(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={"text": "hi"}))

    result = await _client().scrape("https://example.com/page")

    assert result == {"text": "hi"}
    assert transport.calls[0]["url"] == "https://scrape.serper.dev"
    assert transport.calls[0]["json"] == {"url": "https://example.com/page"}


@pytest.mark.asyncio
async def test_timeout_is_applied_per_attempt(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={}))

    await _client(timeout_ms=2500).search("python")

    assert transport.calls[0]["timeout"].total == 2.5


# Validation happens before any request

@pytest.mark.asyncio
async def test_invalid_query_is_never_sent(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={}))

    with pytest.raises(WebToolValidationError, match="Invalid query format"):
        await _client().search("   ")

    assert transport.calls == []


@pytest.mark.asyncio
async def test_invalid_url_is_never_sent(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={}))

    with pytest.raises(WebToolValidationError, match="Invalid URL format"):
        await _client().scrape("not a url")

    assert transport.calls == []


# Retry loop

@pytest.mark.asyncio
async def test_retries_server_errors_until_success(scripted_transport, recorded_delays):
    transport = scripted_transport(
        _server_error(),
        _server_error(),
        MockResponse(json_data={"organic": [{"title": "ok"}]}),
    )

    result = await _client(recorded_delays, max_retries=3).search("python")

    assert result == {"organic": [{"title": "ok"}]}
    assert len(transport.calls) == 3
    assert recorded_delays.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_client_error_is_not_retried(scripted_transport, recorded_delays):
    transport = scripted_transport(
        MockResponse(status=404, json_data={"message": "Not found here"}, reason="Not Found")
    )

    with pytest.raises(WebToolClientError) as exc_info:
        await _client(recorded_delays).search("python")

    assert exc_info.value.status == 404
    assert str(exc_info.value) == "API request failed: Not found here"
    assert len(transport.calls) == 1
    assert recorded_delays.delays == []


@pytest.mark.asyncio
async def test_client_error_falls_back_to_reason(scripted_transport, recorded_delays):
    scripted_transport(MockResponse(status=400, reason="Bad Request", raw_text="<html>"))

    with pytest.raises(WebToolClientError, match="API request failed: Bad Request"):
        await _client(recorded_delays).search("python")


@pytest.mark.asyncio
async def test_exhaustion_raises_last_server_error(scripted_transport, recorded_delays):
    transport = scripted_transport(
        MockResponse(status=502, json_data={"message": "first"}),
        MockResponse(status=503, json_data={"message": "second"}),
        MockResponse(status=500, json_data={"message": "last"}),
    )

    with pytest.raises(WebToolServerError) as exc_info:
        await _client(recorded_delays, max_retries=3).search("python")

    assert str(exc_info.value) == "API request failed: last"
    assert exc_info.value.status == 500
    assert len(transport.calls) == 3
    assert recorded_delays.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_network_errors_are_retried(scripted_transport, recorded_delays):
    transport = scripted_transport(
        aiohttp.ClientConnectionError("connection refused"),
        MockResponse(json_data={"text": "page"}),
    )

    result = await _client(recorded_delays, retry_delay_ms=250).scrape("https://example.com")

    assert result == {"text": "page"}
    assert len(transport.calls) == 2
    assert recorded_delays.delays == [0.25]


@pytest.mark.asyncio
async def test_timeouts_are_retried_then_surface(scripted_transport, recorded_delays):
    transport = scripted_transport(asyncio.TimeoutError())

    with pytest.raises(WebToolTimeoutError, match="Request timeout"):
        await _client(recorded_delays, max_retries=2).search("python")

    assert len(transport.calls) == 2
    assert recorded_delays.delays == [1.0]


@pytest.mark.asyncio
async def test_undecodable_success_body_is_retried(scripted_transport, recorded_delays):
    transport = scripted_transport(
        MockResponse(status=200, raw_text="<html>"),
        MockResponse(json_data={"organic": []}),
    )

    assert await _client(recorded_delays).search("python") == {"organic": []}
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_single_attempt_config_never_sleeps(scripted_transport, recorded_delays):
    scripted_transport(_server_error())

    with pytest.raises(WebToolServerError):
        await _client(recorded_delays, max_retries=1).search("python")

    assert recorded_delays.delays == []


# Logging

def _client_messages(caplog):
    return [r.getMessage() for r in caplog.records if r.name == "webtools.serper_client"]


@pytest.mark.asyncio
async def test_every_attempt_logs_its_request(scripted_transport, recorded_delays, caplog):
    caplog.set_level(logging.DEBUG, logger="webtools.serper_client")
    scripted_transport(_server_error(), _server_error(), MockResponse(json_data={"organic": []}))

    await _client(recorded_delays, max_retries=3).search("python")

    requests = [m for m in _client_messages(caplog) if m.startswith("API request: POST")]
    assert requests == [
        f"API request: POST {SEARCH_URL} (attempt {n}/3)" for n in (1, 2, 3)
    ]
    responses = [m for m in _client_messages(caplog) if m.startswith("API response:")]
    assert len(responses) == 1
    assert f"{SEARCH_URL} - 200 (" in responses[0]


@pytest.mark.asyncio
async def test_client_error_logs_its_status(scripted_transport, recorded_delays, caplog):
    caplog.set_level(logging.DEBUG, logger="webtools.serper_client")
    scripted_transport(MockResponse(status=404, json_data={"message": "Not found here"}))

    with pytest.raises(WebToolClientError):
        await _client(recorded_delays).search("python")

    responses = [m for m in _client_messages(caplog) if m.startswith("API response:")]
    assert len(responses) == 1
    assert " - 404 (" in responses[0]
    assert responses[0].endswith("ms)")


@pytest.mark.asyncio
async def test_network_exhaustion_logs_status_zero(scripted_transport, recorded_delays, caplog):
    caplog.set_level(logging.DEBUG, logger="webtools.serper_client")
    scripted_transport(aiohttp.ClientConnectionError("connection refused"))

    with pytest.raises(WebToolNetworkError):
        await _client(recorded_delays, max_retries=2).scrape("https://example.com")

    messages = _client_messages(caplog)
    assert len([m for m in messages if m.startswith("API request: POST")]) == 2
    responses = [m for m in messages if m.startswith("API response:")]
    assert len(responses) == 1
    assert f"{SCRAPE_URL} - 0 (" in responses[0]


# Cancellation

@pytest.mark.asyncio
async def test_abort_mid_flight_is_terminal(scripted_transport, recorded_delays):
    never = asyncio.Event()
    transport = scripted_transport(MockResponse(json_data={}, hang=never))
    abort = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, abort.set)

    with pytest.raises(WebToolCancelledError) as exc_info:
        await _client(recorded_delays).search("python", abort=abort)

    assert not isinstance(exc_info.value, WebToolNetworkError)
    assert len(transport.calls) == 1
    assert recorded_delays.delays == []


@pytest.mark.asyncio
async def test_abort_during_backoff_stops_retrying(scripted_transport):
    transport = scripted_transport(_server_error())
    abort = asyncio.Event()
    client = _client(retry_delay_ms=60000)
    asyncio.get_running_loop().call_later(0.01, abort.set)

    with pytest.raises(WebToolCancelledError):
        await client.search("python", abort=abort)

    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_abort_already_set_sends_nothing(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={}))
    abort = asyncio.Event()
    abort.set()

    with pytest.raises(WebToolCancelledError):
        await _client().scrape("https://example.com", abort=abort)

    assert transport.calls == []


# API key validation

@pytest.mark.asyncio
async def test_validate_api_key_accepts_working_key(scripted_transport):
    transport = scripted_transport(MockResponse(json_data={"organic": []}))

    assert await _client().validate_api_key() is True
    assert transport.calls[0]["json"] == {"q": "test query", "num": 1, "page": 1}


@pytest.mark.asyncio
async def test_validate_api_key_rejects_unauthorized(scripted_transport):
    scripted_transport(MockResponse(status=401, json_data={"message": "Unauthorized.", "statusCode": 401}))

    assert await _client().validate_api_key() is False


@pytest.mark.asyncio
async def test_validate_api_key_rejects_forbidden(scripted_transport):
    scripted_transport(MockResponse(status=403, json_data={"message": "Forbidden"}))

    assert await _client().validate_api_key() is False


@pytest.mark.asyncio
async def test_validate_api_key_treats_other_failures_as_valid(scripted_transport, recorded_delays):
    scripted_transport(_server_error())

    assert await _client(recorded_delays).validate_api_key() is True

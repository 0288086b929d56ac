"""
Search and scrape tools backed by the Serper client.

Tool actions always return a JSON string. Failures of any kind come back as
``{"error": ..., "success": false}`` instead of an exception.
"""

import json
import logging
import time
from typing import Any, Callable, Optional

from webtools.config import Settings, get_settings
from webtools.constants import (
    NO_API_KEY,
    SCRAPE_DISPLAY_URL_LENGTH,
    SCRAPE_TOOL_DESCRIPTION,
    SCRAPE_TOOL_DISPLAY_NAME,
    SCRAPE_TOOL_NAME,
    SEARCH_TOOL_DESCRIPTION,
    SEARCH_TOOL_DISPLAY_NAME,
    SEARCH_TOOL_NAME,
)
from webtools.exceptions import WebToolConfigError
from webtools.formatters import format_scrape_results, format_search_results
from webtools.models import SearchOptions
from webtools.registry import ToolDescriptor, ToolParams, ToolRegistry
from webtools.serper_client import SerperClient, create_serper_client

logger = logging.getLogger(__name__)

SettingsProvider = Callable[[], Settings]
ClientFactory = Callable[..., SerperClient]

SEARCH_PARAMETERS = {
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {
            "type": "string",
            "description": "The content the user wants to search for, extracted from the user question or chat context.",
        },
    },
}

SCRAPE_PARAMETERS = {
    "type": "object",
    "required": ["url"],
    "properties": {
        "url": {
            "type": "string",
            "description": "The website address (URL) of the content to be obtained, which can usually be obtained from the search results.",
        },
    },
}


def _error_payload(error: Exception, **context: Any) -> str:
    return json.dumps({"error": str(error), "success": False, **context})


def _client_for(
    settings: Settings, client_factory: ClientFactory, tool_logger: logging.Logger
) -> SerperClient:
    if not settings.has_api_key:
        raise WebToolConfigError(NO_API_KEY)
    return client_factory(settings.serper_api_key, logger=tool_logger, timeout_ms=settings.timeout_ms)


def _gate(settings_provider: SettingsProvider):
    async def should_register() -> bool:
        current = settings_provider()
        return current.has_api_key and current.enabled is not False

    return should_register


def build_search_tool(
    settings_provider: SettingsProvider = get_settings,
    client_factory: ClientFactory = create_serper_client,
    tool_logger: Optional[logging.Logger] = None,
) -> ToolDescriptor:
    """Build the web search tool descriptor"""
    log = tool_logger or logger

    async def action(params: ToolParams) -> str:
        start_time = time.monotonic()
        log.debug(f"Tool invoked: {SEARCH_TOOL_NAME} {params}")

        try:
            current = settings_provider()
            client = _client_for(current, client_factory, log)
            response = await client.search(
                params.get("query"),
                SearchOptions(num=current.max_results),
            )
            log.debug(f"Raw search response: {response}")

            formatted = format_search_results(response)
            _log_result(log, SEARCH_TOOL_NAME, True, start_time)
            return formatted.to_json()

        except Exception as e:
            _log_result(log, SEARCH_TOOL_NAME, False, start_time)
            log.error(f"Search error: {str(e)}")
            return _error_payload(e)

    async def format_message(params: ToolParams) -> str:
        return f'Searching for: "{params.get("query", "")}"'

    return ToolDescriptor(
        name=SEARCH_TOOL_NAME,
        display_name=SEARCH_TOOL_DISPLAY_NAME,
        description=SEARCH_TOOL_DESCRIPTION,
        parameters=SEARCH_PARAMETERS,
        action=action,
        format_message=format_message,
        should_register=_gate(settings_provider),
    )


def build_scrape_tool(
    settings_provider: SettingsProvider = get_settings,
    client_factory: ClientFactory = create_serper_client,
    tool_logger: Optional[logging.Logger] = None,
) -> ToolDescriptor:
    """Build the web scraping tool descriptor"""
    log = tool_logger or logger

    async def action(params: ToolParams) -> str:
        start_time = time.monotonic()
        url = params.get("url")
        log.debug(f"Tool invoked: {SCRAPE_TOOL_NAME} {params}")

        try:
            current = settings_provider()
            client = _client_for(current, client_factory, log)
            response = await client.scrape(url)
            log.debug(f"Raw scrape response: {response}")

            formatted = format_scrape_results(response, url)
            _log_result(log, SCRAPE_TOOL_NAME, True, start_time)
            return formatted.to_json()

        except Exception as e:
            _log_result(log, SCRAPE_TOOL_NAME, False, start_time)
            log.error(f"Scrape error: {str(e)}")
            return _error_payload(e, url=url)

    async def format_message(params: ToolParams) -> str:
        url = str(params.get("url", ""))
        if len(url) > SCRAPE_DISPLAY_URL_LENGTH:
            url = url[:SCRAPE_DISPLAY_URL_LENGTH - 3] + "..."
        return f"Scraping: {url}"

    return ToolDescriptor(
        name=SCRAPE_TOOL_NAME,
        display_name=SCRAPE_TOOL_DISPLAY_NAME,
        description=SCRAPE_TOOL_DESCRIPTION,
        parameters=SCRAPE_PARAMETERS,
        action=action,
        format_message=format_message,
        should_register=_gate(settings_provider),
    )


def _log_result(log: logging.Logger, name: str, success: bool, start_time: float) -> None:
    duration_ms = (time.monotonic() - start_time) * 1000
    status = "succeeded" if success else "failed"
    log.info(f"Tool {status}: {name} ({duration_ms:.0f}ms)")


def register_all_tools(
    registry: ToolRegistry,
    settings_provider: SettingsProvider = get_settings,
    client_factory: ClientFactory = create_serper_client,
    tool_logger: Optional[logging.Logger] = None,
) -> None:
    logger.info("Registering tools...")
    registry.register_function_tool(build_search_tool(settings_provider, client_factory, tool_logger))
    registry.register_function_tool(build_scrape_tool(settings_provider, client_factory, tool_logger))
    logger.info("Tools registered successfully")


def unregister_all_tools(registry: ToolRegistry) -> None:
    logger.info("Unregistering tools...")
    registry.unregister_function_tool(SEARCH_TOOL_NAME)
    registry.unregister_function_tool(SCRAPE_TOOL_NAME)
    logger.info("Tools unregistered successfully")


def reregister_tools(registry: ToolRegistry, **kwargs: Any) -> None:
    """Drop and rebuild both tools, e.g. after the settings source changed"""
    unregister_all_tools(registry)
    register_all_tools(registry, **kwargs)

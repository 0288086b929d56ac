import asyncio
import logging
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from webtools.config import get_settings
from webtools.constants import (
    SCRAPE_TOOL_DESCRIPTION,
    SCRAPE_TOOL_NAME,
    SEARCH_TOOL_DESCRIPTION,
    SEARCH_TOOL_NAME,
)
from webtools.registry import ToolRegistry
from webtools.serper_client import create_serper_client
from webtools.tools import ClientFactory, SettingsProvider, register_all_tools

logger = logging.getLogger(__name__)


class MCPServer:
    """MCP Server that exposes the registered web tools"""

    def __init__(
        self,
        settings_provider: SettingsProvider = get_settings,
        client_factory: ClientFactory = create_serper_client,
        registry: Optional[ToolRegistry] = None,
    ):
        self.registry = registry or ToolRegistry()
        register_all_tools(self.registry, settings_provider=settings_provider, client_factory=client_factory)
        self.server = FastMCP("serper-webtools")

    async def setup_tools(self) -> List[str]:
        """Expose every tool whose registration gate passes on the MCP server"""
        active = [tool.name for tool in await self.registry.active_tools()]

        if SEARCH_TOOL_NAME in active:
            @self.server.tool(name=SEARCH_TOOL_NAME, description=SEARCH_TOOL_DESCRIPTION)
            async def search(query: str) -> str:
                """
                Search the web using Serper API

                Args:
                    query: Search query string (required)

                Returns:
                    JSON string with the normalized results or an error object
                """
                logger.info(await self.registry.format_message(SEARCH_TOOL_NAME, {"query": query}))
                return await self.registry.invoke(SEARCH_TOOL_NAME, {"query": query})

        if SCRAPE_TOOL_NAME in active:
            @self.server.tool(name=SCRAPE_TOOL_NAME, description=SCRAPE_TOOL_DESCRIPTION)
            async def scrape(url: str) -> str:
                """
                Extract the content of a web page using Serper API

                Args:
                    url: Absolute URL of the page (required)

                Returns:
                    JSON string with the page content or an error object
                """
                logger.info(await self.registry.format_message(SCRAPE_TOOL_NAME, {"url": url}))
                return await self.registry.invoke(SCRAPE_TOOL_NAME, {"url": url})

        if active:
            logger.info(f"Exposed tools: {', '.join(active)}")
        else:
            logger.warning("No tools exposed: API key missing or tools disabled")
        return active

    def run(self):
        """Run the MCP server using stdio communication"""
        logger.info("Starting MCP web tools server...")

        try:
            asyncio.run(self.setup_tools())
            self.server.run(transport="stdio")
        except Exception as e:
            logger.error(f"Failed to start MCP server: {str(e)}", exc_info=True)
            raise


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main():
    """Main entry point for the MCP server"""
    configure_logging(get_settings().log_level)
    server = MCPServer()

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("MCP server stopped by user")
    except Exception as e:
        logger.error(f"MCP server failed: {str(e)}", exc_info=True)
        exit(1)


if __name__ == "__main__":
    main()

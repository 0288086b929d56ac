import json
import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from webtools.config import get_settings
from webtools.constants import SCRAPE_TOOL_NAME, SEARCH_TOOL_NAME
from webtools.exceptions import ToolNotRegisteredError, WebToolConfigError
from webtools.registry import ToolRegistry
from webtools.serper_client import create_serper_client
from webtools.tools import ClientFactory, SettingsProvider, register_all_tools

logger = logging.getLogger(__name__)


# Request/Response Models
class SearchRequest(BaseModel):
    query: str = Field(..., description="Search query")


class ScrapeRequest(BaseModel):
    url: str = Field(..., description="URL of the page to scrape")


class ToolCallResponse(BaseModel):
    tool: str
    message: str
    result: Dict[str, Any]


class ToolInfo(BaseModel):
    name: str
    display_name: str
    description: str
    parameters: Dict[str, Any]


class ValidateKeyRequest(BaseModel):
    api_key: Optional[str] = Field(default=None, description="Key to check; defaults to the configured key")


class ValidateKeyResponse(BaseModel):
    valid: bool


class HealthResponse(BaseModel):
    status: str
    tools_registered: List[str]
    api_key_configured: bool


def create_app(
    settings_provider: Optional[SettingsProvider] = None,
    registry: Optional[ToolRegistry] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """Create the HTTP gateway around an in-process tool registry"""
    settings_provider = settings_provider or get_settings
    client_factory = client_factory or create_serper_client
    if registry is None:
        registry = ToolRegistry()
        register_all_tools(registry, settings_provider=settings_provider, client_factory=client_factory)

    app = FastAPI(
        title="Serper Web Tools Gateway",
        description="HTTP gateway for the search and scrape tools",
        version="1.0.0",
    )

    async def call_tool(name: str, params: Dict[str, Any]) -> ToolCallResponse:
        try:
            message = await registry.format_message(name, params)
            output = await registry.invoke(name, params)
        except ToolNotRegisteredError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

        logger.info(message)
        return ToolCallResponse(tool=name, message=message, result=json.loads(output))

    @app.post("/search", response_model=ToolCallResponse)
    async def search_web(request: SearchRequest) -> ToolCallResponse:
        """Run the search tool"""
        return await call_tool(SEARCH_TOOL_NAME, {"query": request.query})

    @app.post("/scrape", response_model=ToolCallResponse)
    async def scrape_page(request: ScrapeRequest) -> ToolCallResponse:
        """Run the scrape tool"""
        return await call_tool(SCRAPE_TOOL_NAME, {"url": request.url})

    @app.get("/tools", response_model=List[ToolInfo])
    async def list_tools() -> List[ToolInfo]:
        """List the tools whose registration gate currently passes"""
        return [
            ToolInfo(
                name=tool.name,
                display_name=tool.display_name,
                description=tool.description,
                parameters=tool.parameters,
            )
            for tool in await registry.active_tools()
        ]

    @app.post("/settings/validate-key", response_model=ValidateKeyResponse)
    async def validate_key(request: ValidateKeyRequest) -> ValidateKeyResponse:
        """Check an API key against Serper"""
        api_key = request.api_key if request.api_key is not None else settings_provider().serper_api_key
        try:
            client = client_factory(api_key, timeout_ms=settings_provider().timeout_ms)
        except WebToolConfigError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please enter an API key first"
            )
        return ValidateKeyResponse(valid=await client.validate_api_key())

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Report which tools are active"""
        active = [tool.name for tool in await registry.active_tools()]
        return HealthResponse(
            status="healthy" if active else "degraded",
            tools_registered=active,
            api_key_configured=settings_provider().has_api_key,
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "message": "Serper Web Tools Gateway",
            "version": "1.0.0",
            "endpoints": {
                "search": "POST /search",
                "scrape": "POST /scrape",
                "tools": "GET /tools",
                "validate_key": "POST /settings/validate-key",
                "health": "GET /health"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import os
    from webtools.mcp_server import configure_logging

    configure_logging(get_settings().log_level)
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "gateway.fastapi_gateway:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )

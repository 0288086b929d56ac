import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from webtools.constants import TOOL_NOT_REGISTERED
from webtools.exceptions import ToolNotRegisteredError

logger = logging.getLogger(__name__)

ToolParams = Dict[str, Any]


@dataclass
class ToolDescriptor:
    """A callable tool as seen by the host

    Attributes:
        name: Name the model calls the tool by.
        display_name: Human readable name.
        description: Description shown to the model.
        parameters: JSON schema of the tool parameters.
        action: Runs the tool and returns a JSON string.
        format_message: Renders a short status line for a call.
        should_register: Registration gate, evaluated by the host.
    """

    name: str
    display_name: str
    description: str
    parameters: Dict[str, Any]
    action: Callable[[ToolParams], Awaitable[str]]
    format_message: Optional[Callable[[ToolParams], Awaitable[str]]] = None
    should_register: Optional[Callable[[], Awaitable[bool]]] = None

    async def is_active(self) -> bool:
        if self.should_register is None:
            return True
        return await self.should_register()


class ToolRegistry:
    """Holds tool descriptors and dispatches calls to the active ones"""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def register_function_tool(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            logger.warning(f"Replacing registered tool: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        logger.debug(f"Registered tool: {descriptor.name}")

    def unregister_function_tool(self, name: str) -> None:
        if self._tools.pop(name, None) is not None:
            logger.debug(f"Unregistered tool: {name}")

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    async def active_tools(self) -> List[ToolDescriptor]:
        """Descriptors whose registration gate currently passes"""
        return [tool for tool in self._tools.values() if await tool.is_active()]

    async def _require_active(self, name: str) -> ToolDescriptor:
        descriptor = self._tools.get(name)
        if descriptor is None or not await descriptor.is_active():
            raise ToolNotRegisteredError(f"{TOOL_NOT_REGISTERED}: {name}")
        return descriptor

    async def format_message(self, name: str, params: ToolParams) -> str:
        descriptor = await self._require_active(name)
        if descriptor.format_message is None:
            return descriptor.display_name
        return await descriptor.format_message(params)

    async def invoke(self, name: str, params: ToolParams) -> str:
        """Run an active tool and return its JSON output"""
        descriptor = await self._require_active(name)
        return await descriptor.action(params)

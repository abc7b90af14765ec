"""Tool registration and dispatch.

Each domain's registrar adds its tools to one ``ToolRegistry`` during
startup. The MCP server then lists and calls tools exclusively through the
registry:

    registry = ToolRegistry()

    @registry.tool("wiki_list_wikis", "List wikis", ListWikisParams,
                   domain=Domain.WIKI, failure_mode=FailureMode.RECOVERABLE,
                   failure_action="fetching wikis")
    async def list_wikis(params: ListWikisParams) -> CallToolResult:
        ...

Arguments are validated against the tool's pydantic model before the handler
runs; a ``ValidationError`` propagates and the handler is never invoked.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from mcp.types import CallToolResult, Tool
from pydantic import BaseModel

from .errors import ProviderError, UnknownToolError
from .results import error_message, error_result

logger = logging.getLogger("ado-mcp.registry")

ToolHandler = Callable[[Any], Awaitable[CallToolResult]]


class FailureMode(str, enum.Enum):
    """What happens when a handler raises.

    RECOVERABLE: the exception becomes an ``isError`` result with the text
    ``Error <failure_action>: <message>``.
    FATAL: the exception propagates to the MCP layer.
    """

    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    domain: str
    failure_mode: FailureMode = FailureMode.FATAL
    failure_action: Optional[str] = None

    def to_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_model.model_json_schema(),
        )


class ToolRegistry:
    """Write-once catalog of tools, keyed by unique name."""

    def __init__(self):
        self._tools: dict[str, ToolDescriptor] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDescriptor:
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise UnknownToolError(name)
        return descriptor

    def register(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered")
        if descriptor.failure_mode == FailureMode.RECOVERABLE and not descriptor.failure_action:
            raise ValueError(f"Recoverable tool '{descriptor.name}' must declare a failure_action")
        self._tools[descriptor.name] = descriptor
        logger.debug(f"Registered tool {descriptor.name} ({descriptor.domain})")
        return descriptor

    def tool(
        self,
        name: str,
        description: str,
        input_model: type[BaseModel],
        *,
        domain: str,
        failure_mode: FailureMode = FailureMode.FATAL,
        failure_action: Optional[str] = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering an async handler under ``name``."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(
                ToolDescriptor(
                    name=name,
                    description=description,
                    input_model=input_model,
                    handler=handler,
                    domain=str(getattr(domain, "value", domain)),
                    failure_mode=failure_mode,
                    failure_action=failure_action,
                )
            )
            return handler

        return decorator

    def list_tools(self) -> list[Tool]:
        return [descriptor.to_tool() for descriptor in self._tools.values()]

    async def call(self, name: str, arguments: Optional[dict[str, Any]] = None) -> CallToolResult:
        """Validate ``arguments`` and run the named tool's handler."""
        descriptor = self.get(name)
        params = descriptor.input_model.model_validate(arguments or {})

        if descriptor.failure_mode == FailureMode.FATAL:
            return await descriptor.handler(params)

        try:
            return await descriptor.handler(params)
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"Error during {name} call: {type(e).__name__}: {e}")
            return error_result(f"Error {descriptor.failure_action}: {error_message(e)}")

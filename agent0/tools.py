"""Tools bound to a generation.

Versions reference tools as ``{mcp_id, name}``. Turning those references
into callables is the job of a ``ToolResolver``; talking to the MCP servers
behind them happens outside this package.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Union

from agent0.models.version import ToolRef

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], Union[Any, Awaitable[Any]]]


@dataclass
class Tool:
    """A callable tool plus the schema the model sees."""

    name: str
    execute: ToolHandler
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    async def call(self, tool_input: Any) -> Any:
        """Run the handler, awaiting it if it is async."""
        result = self.execute(tool_input)
        if inspect.isawaitable(result):
            result = await result
        return result


ToolSet = dict[str, Tool]


class ToolResolver(Protocol):
    """Protocol for turning tool references into a bound tool set."""

    def resolve(self, refs: list[ToolRef]) -> ToolSet:
        ...


class StaticToolResolver:
    """Serves tools registered in-process, keyed by (mcp_id, name)."""

    def __init__(self) -> None:
        self._tools: dict[tuple[str, str], Tool] = {}

    def register(self, mcp_id: str, tool: Tool) -> None:
        self._tools[(mcp_id, tool.name)] = tool

    def resolve(self, refs: list[ToolRef]) -> ToolSet:
        tools: ToolSet = {}
        for ref in refs:
            tool = self._tools.get((ref.mcp_id, ref.name))
            if tool is None:
                # the version still runs, just without this tool
                logger.warning(f"Tool {ref.name} not available from MCP server {ref.mcp_id}")
                continue
            tools[tool.name] = tool
        return tools

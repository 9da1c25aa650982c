"""
Tool registry: maps a tool name to its description, input model and handler.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from mcp import types
from pydantic import BaseModel, ValidationError

from actual_mcp.exceptions import ToolInputError, ToolNotFoundError
from actual_mcp.integrations.base import BudgetClient

ToolHandler = Callable[[Any, BudgetClient], Awaitable[dict]]


@dataclass(frozen=True)
class ToolDefinition:
    """A named, schema-described tool."""
    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    @property
    def input_schema(self) -> dict:
        return self.input_model.model_json_schema()

    def parse_arguments(self, arguments: Optional[dict]) -> BaseModel:
        try:
            return self.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            raise ToolInputError(
                self.name,
                exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )


class ToolRegistry:
    """
    Immutable-by-convention collection of tools.

    Tools are registered once at startup; lookups happen per tools/call.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name} is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[types.Tool]:
        return [tool.to_mcp_tool() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry() -> ToolRegistry:
    """Registry with every tool the bridge ships."""
    from actual_mcp.mcp.tools import accounts, transactions

    return ToolRegistry([
        accounts.LIST_ACCOUNTS,
        transactions.CREATE_TRANSACTION,
    ])

"""Tool provider contract used by the registry."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from planner.models import ToolDescriptor, ToolResult


class ToolProvider(ABC):
    """An external source of callable tools (one per configured server)."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection. Raises ProviderDiscoveryError on failure."""

    @abstractmethod
    async def list_tools(self) -> List[ToolDescriptor]:
        """Return the provider's tools, tagged with this provider's id."""

    @abstractmethod
    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolResult:
        """Call a tool by its provider-local name.

        The returned result carries an empty tool_call_id; the registry stamps it.
        Raises ToolExecutionError when the provider itself fails.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection. Must be safe to call more than once."""

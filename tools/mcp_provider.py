"""MCP tool provider: one stdio server process per provider."""

import json
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from planner.errors import ProviderDiscoveryError, ToolExecutionError
from planner.models import ToolDescriptor, ToolResult
from tools.provider import ToolProvider

logger = logging.getLogger(__name__)


class MCPStdioProvider(ToolProvider):
    """Spawns an MCP server over stdio and exposes its tools."""

    def __init__(self, provider_id: str, command: str, args: Optional[List[str]] = None,
                 env: Optional[Dict[str, str]] = None, cwd: Optional[str] = None):
        super().__init__(provider_id)
        self.command = command
        self.args = list(args or [])
        self.env = dict(env) if env else None
        self.cwd = cwd
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        if self._session is not None:
            return
        params = StdioServerParameters(command=self.command, args=self.args, env=self.env, cwd=self.cwd)
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except Exception as e:
            await stack.aclose()
            raise ProviderDiscoveryError(f"Failed to start MCP server '{self.provider_id}': {e}") from e
        self._stack = stack
        self._session = session
        logger.info(f"Connected to MCP server '{self.provider_id}' ({self.command})")

    async def list_tools(self) -> List[ToolDescriptor]:
        if self._session is None:
            raise ProviderDiscoveryError(f"MCP server '{self.provider_id}' is not connected")
        try:
            result = await self._session.list_tools()
        except Exception as e:
            raise ProviderDiscoveryError(f"Failed to list tools from '{self.provider_id}': {e}") from e

        descriptors: List[ToolDescriptor] = []
        for tool in getattr(result, "tools", None) or []:
            name = getattr(tool, "name", None)
            if not isinstance(name, str) or not name.strip():
                continue
            schema = getattr(tool, "inputSchema", None)
            descriptors.append(ToolDescriptor(
                provider_id=self.provider_id,
                tool_name=name.strip(),
                description=getattr(tool, "description", None) or "",
                input_schema=dict(schema) if isinstance(schema, dict) else {"type": "object"},
            ))
        return descriptors

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolResult:
        if self._session is None:
            raise ToolExecutionError(f"MCP server '{self.provider_id}' is not connected")
        try:
            result = await self._session.call_tool(name, arguments=args)
        except Exception as e:
            raise ToolExecutionError(f"{self.provider_id}.{name} failed: {e}") from e
        return _to_tool_result(result)

    async def disconnect(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            await stack.aclose()
            logger.info(f"Disconnected MCP server '{self.provider_id}'")


def _to_tool_result(result: Any) -> ToolResult:
    """Flatten an MCP CallToolResult into output text or error text."""
    parts: List[str] = []
    for block in getattr(result, "content", None) or []:
        text = getattr(block, "text", None)
        if isinstance(text, str):
            parts.append(text)
        else:
            parts.append(f"[{getattr(block, 'type', 'content')} content omitted]")
    text_out = "\n".join(parts).strip()

    structured = getattr(result, "structuredContent", None)
    if not text_out and structured:
        text_out = json.dumps(structured, indent=2)

    if getattr(result, "isError", False):
        return ToolResult(tool_call_id="", error_text=text_out or "tool reported an error")
    return ToolResult(tool_call_id="", output=text_out)

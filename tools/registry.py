"""
Tool registry: a flat, provider-attributed catalogue of tools discovered from
every configured provider, and routing of calls back to the owning provider.
"""

import logging
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

from planner.errors import ProviderDiscoveryError, ToolExecutionError
from planner.models import ToolDescriptor, ToolResult
from tools.provider import ToolProvider

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Discovers tools once and keeps the catalogue stable until refresh()."""

    def __init__(self, providers: Optional[List[ToolProvider]] = None):
        self.providers: List[ToolProvider] = list(providers or [])
        self._catalogue: List[ToolDescriptor] = []
        self._by_name: Dict[str, ToolDescriptor] = {}
        self._owners: Dict[str, ToolProvider] = {}
        self._validators: Dict[str, Any] = {}
        self._discovered = False

    @property
    def discovered(self) -> bool:
        return self._discovered

    @property
    def catalogue(self) -> List[ToolDescriptor]:
        return list(self._catalogue)

    def get(self, qualified_name: str) -> Optional[ToolDescriptor]:
        return self._by_name.get(qualified_name)

    async def discover(self) -> List[ToolDescriptor]:
        """Connect to every provider and collect its tools.

        A provider that fails to connect or list is logged and left out;
        discovery itself never fails.
        """
        if self._discovered:
            return self.catalogue

        for provider in self.providers:
            try:
                await provider.connect()
                tools = await provider.list_tools()
            except ProviderDiscoveryError as e:
                logger.warning(f"Tool provider '{provider.provider_id}' unavailable: {e}")
                await self._safe_disconnect(provider)
                continue
            except Exception as e:
                logger.exception(f"Unexpected error discovering tools from '{provider.provider_id}': {e}")
                await self._safe_disconnect(provider)
                continue

            added = 0
            for tool in tools:
                name = tool.qualified_name
                if name in self._by_name:
                    logger.warning(f"Duplicate tool name '{name}' from '{provider.provider_id}', skipping")
                    continue
                self._catalogue.append(tool)
                self._by_name[name] = tool
                self._owners[name] = provider
                self._validators[name] = _build_validator(tool)
                added += 1
            logger.info(f"Discovered {added} tool(s) from '{provider.provider_id}'")

        self._discovered = True
        logger.info(f"Tool catalogue ready: {len(self._catalogue)} tool(s) from {len(self.providers)} provider(s)")
        return self.catalogue

    async def refresh(self) -> List[ToolDescriptor]:
        """Disconnect everything and rediscover from scratch."""
        await self.close()
        return await self.discover()

    async def invoke(self, tool_name: str, args: Dict[str, Any], call_id: str = "") -> ToolResult:
        """Validate args and call the owning provider. Failures come back as error results."""
        descriptor = self._by_name.get(tool_name)
        if descriptor is None:
            return ToolResult(tool_call_id=call_id, error_text=f"Unknown tool: {tool_name}")

        if not isinstance(args, dict):
            return ToolResult(tool_call_id=call_id, error_text="Tool arguments must be a JSON object")

        validator = self._validators.get(tool_name)
        if validator is not None:
            problems = sorted(validator.iter_errors(args), key=lambda e: list(e.path))
            if problems:
                details = "; ".join(_describe_validation_error(e) for e in problems[:5])
                logger.warning(f"Invalid arguments for {tool_name}: {details}")
                return ToolResult(tool_call_id=call_id, error_text=f"Invalid arguments for {tool_name}: {details}")

        provider = self._owners[tool_name]
        logger.debug(f"Invoking {tool_name} via '{provider.provider_id}'")
        try:
            result = await provider.call_tool(descriptor.tool_name, args)
        except ToolExecutionError as e:
            logger.warning(f"Tool {tool_name} failed: {e}")
            return ToolResult(tool_call_id=call_id, error_text=str(e))
        except Exception as e:
            logger.exception(f"Tool {tool_name} raised unexpectedly")
            return ToolResult(tool_call_id=call_id, error_text=f"{type(e).__name__}: {e}")

        return ToolResult(tool_call_id=call_id, output=result.output, error_text=result.error_text)

    async def close(self) -> None:
        for provider in self.providers:
            await self._safe_disconnect(provider)
        self._catalogue = []
        self._by_name = {}
        self._owners = {}
        self._validators = {}
        self._discovered = False

    @staticmethod
    async def _safe_disconnect(provider: ToolProvider) -> None:
        try:
            await provider.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting '{provider.provider_id}': {e}")


def _build_validator(tool: ToolDescriptor) -> Optional[Any]:
    schema = tool.input_schema or {}
    if not schema:
        return None
    cls = validator_for(schema, default=Draft202012Validator)
    try:
        cls.check_schema(schema)
    except SchemaError as e:
        logger.warning(f"Tool {tool.qualified_name} declares an invalid input schema, arguments unchecked: {e.message}")
        return None
    return cls(schema)


def _describe_validation_error(error: Any) -> str:
    location = "/".join(str(p) for p in error.path)
    return f"{location}: {error.message}" if location else error.message

"""
External tools for the planner.
Tools come from providers (MCP servers over stdio); the registry keeps a flat
catalogue and routes calls. Two reserved pseudo-tools are intercepted by the
orchestrator instead of being dispatched.
"""

from tools.provider import ToolProvider  # noqa: F401
from tools.registry import ToolRegistry  # noqa: F401
from tools.schemas import (  # noqa: F401
    ASK_HUMAN_NAME,
    PRESENT_CHOICE_NAME,
    RESERVED_TOOL_NAMES,
    RESERVED_TOOL_DEFINITIONS,
    reserved_tool_descriptors,
)
from tools.dispatch import (  # noqa: F401
    reserved_kind,
    reserved_args_error,
    interrupt_from_call,
    execute_tool_calls,
)

"""Tool call dispatch: reserved pseudo-tool interception and sequential execution."""

import logging
from typing import Iterable, List, Optional

from jsonschema import Draft202012Validator

from planner.models import HumanInterrupt, ToolCall, ToolResult
from tools.registry import ToolRegistry
from tools.schemas import ASK_HUMAN_DEFINITION, PRESENT_CHOICE_DEFINITION, RESERVED_TOOL_NAMES

logger = logging.getLogger(__name__)

_RESERVED_VALIDATORS = {
    d["name"]: Draft202012Validator(d["input_schema"])
    for d in (ASK_HUMAN_DEFINITION, PRESENT_CHOICE_DEFINITION)
}


def reserved_kind(call: ToolCall) -> Optional[str]:
    """Name of the pseudo-tool this call targets, or None for an ordinary tool."""
    return call.name if call.name in RESERVED_TOOL_NAMES else None


def reserved_args_error(call: ToolCall) -> Optional[str]:
    """Error text when a pseudo-tool call carries unusable arguments."""
    validator = _RESERVED_VALIDATORS[call.name]
    problems = list(validator.iter_errors(call.args))
    if not problems:
        return None
    return f"Invalid arguments for {call.name}: " + "; ".join(p.message for p in problems[:3])


def interrupt_from_call(call: ToolCall) -> HumanInterrupt:
    """Turn a reserved call into the suspend signal handed to the caller."""
    options = call.args.get("options") or []
    return HumanInterrupt(
        tool_call_id=call.id,
        kind=call.name,
        question=str(call.args.get("question", "")).strip(),
        options=[str(o) for o in options] if isinstance(options, list) else [],
        context=str(call.args.get("context", "") or "").strip(),
    )


async def execute_tool_calls(registry: ToolRegistry, calls: Iterable[ToolCall]) -> List[ToolResult]:
    """Run ordinary tool calls one at a time, results in call order."""
    results: List[ToolResult] = []
    for call in calls:
        logger.info(f"Tool call: {call.name}")
        result = await registry.invoke(call.name, call.args, call_id=call.id)
        if result.is_error:
            logger.warning(f"Tool {call.name} returned error: {result.error_text}")
        results.append(result)
    return results

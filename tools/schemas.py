"""Reserved pseudo-tool definitions.

These are offered to the model alongside provider tools, but calls to them are
never dispatched: the orchestrator suspends and hands the question to the human.
"""

from typing import Any, Dict, FrozenSet, List

from planner.models import ToolDescriptor

ASK_HUMAN_NAME = "ask-human"
PRESENT_CHOICE_NAME = "present-choice"

RESERVED_TOOL_NAMES: FrozenSet[str] = frozenset({ASK_HUMAN_NAME, PRESENT_CHOICE_NAME})

ASK_HUMAN_DEFINITION: Dict[str, Any] = {
    "name": ASK_HUMAN_NAME,
    "description": "Ask the user a free-form clarifying question when neither the codebase nor the available tools can answer it. Use sparingly: prefer tools for facts, and ask the user for intent, priorities and constraints.",
    "input_schema": {
        "type": "object",
        "properties": {
            "question": {"type": "string", "description": "Clear, concise question. State what you need to know and why."},
            "context": {"type": "string", "description": "Brief context explaining why you're asking (what you found, what is unclear)."},
        },
        "required": ["question"],
    },
}

PRESENT_CHOICE_DEFINITION: Dict[str, Any] = {
    "name": PRESENT_CHOICE_NAME,
    "description": "Ask the user to choose between a small set of concrete approaches. Put your recommended choice first. The user can still type a custom answer.",
    "input_schema": {
        "type": "object",
        "properties": {
            "question": {"type": "string", "description": "The decision the user needs to make."},
            "options": {
                "type": "array",
                "items": {"type": "string"},
                "description": "2-5 short answer choices, recommended one first.",
                "minItems": 2,
                "maxItems": 5,
            },
            "context": {"type": "string", "description": "Brief context for the decision."},
        },
        "required": ["question", "options"],
    },
}

RESERVED_TOOL_DEFINITIONS: List[Dict[str, Any]] = [ASK_HUMAN_DEFINITION, PRESENT_CHOICE_DEFINITION]


def reserved_tool_descriptors() -> List[ToolDescriptor]:
    """Descriptors for the pseudo-tools; no provider owns them."""
    return [
        ToolDescriptor(
            provider_id="",
            tool_name=d["name"],
            description=d["description"],
            input_schema=d["input_schema"],
        )
        for d in RESERVED_TOOL_DEFINITIONS
    ]

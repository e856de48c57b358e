"""
Model client and turn executor.

The ModelClient contract is a single async call: conversation history plus the
tool catalogue in, one assistant Message out. BedrockModelClient implements it
on top of BedrockService; TurnExecutor binds a workflow's question prompt and
the catalogue for one planning turn.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bedrock_service import BedrockService, GenerationConfig
from config import model_config

from .models import (
    ROLE_ASSISTANT, ROLE_TOOL, ROLE_USER, Message, ToolCall, ToolDescriptor, WorkflowKind,
)
from .prompts import question_system_prompt

logger = logging.getLogger(__name__)


class ModelClient(ABC):

    @abstractmethod
    async def invoke(
        self,
        history: List[Message],
        tools: List[ToolDescriptor],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Message:
        """Return the assistant's reply, possibly carrying tool calls."""


def to_bedrock_messages(history: List[Message]) -> List[Dict[str, Any]]:
    """Convert history into alternating user/assistant turns.

    Tool results become tool_result blocks; consecutive user-side entries are
    merged into one turn as the messages API requires.
    """
    out: List[Dict[str, Any]] = []

    def _user_blocks(blocks: List[Dict[str, Any]]) -> None:
        if out and out[-1]["role"] == "user":
            prev = out[-1]["content"]
            if isinstance(prev, str):
                prev = [{"type": "text", "text": prev}]
            out[-1]["content"] = prev + blocks
        else:
            out.append({"role": "user", "content": blocks})

    for msg in history:
        if msg.role == ROLE_USER:
            if out and out[-1]["role"] == "user":
                _user_blocks([{"type": "text", "text": msg.content or "(no content)"}])
            else:
                out.append({"role": "user", "content": msg.content})
        elif msg.role == ROLE_TOOL:
            _user_blocks([{
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content or "(no output)",
                "is_error": msg.is_error,
            }])
        elif msg.role == ROLE_ASSISTANT:
            if not msg.tool_calls:
                out.append({"role": "assistant", "content": msg.content})
                continue
            blocks: List[Dict[str, Any]] = []
            if msg.content.strip():
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": dict(call.args)})
            out.append({"role": "assistant", "content": blocks})
    return out


def to_tool_definitions(tools: List[ToolDescriptor]) -> List[Dict[str, Any]]:
    return [
        {
            "name": t.qualified_name,
            "description": t.description or t.tool_name,
            "input_schema": t.input_schema or {"type": "object", "properties": {}},
        }
        for t in tools
    ]


class BedrockModelClient(ModelClient):
    """ModelClient backed by Amazon Bedrock (Anthropic messages format)."""

    def __init__(self, service: Optional[BedrockService] = None, config: Optional[GenerationConfig] = None):
        self.service = service or BedrockService()
        self.config = config or GenerationConfig(
            max_tokens=model_config.max_tokens,
            temperature=model_config.temperature,
            throughput_mode=model_config.throughput_mode,
        )

    async def invoke(
        self,
        history: List[Message],
        tools: List[ToolDescriptor],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Message:
        messages = to_bedrock_messages(history)
        tool_defs = to_tool_definitions(tools) if tools else None
        cfg = GenerationConfig(
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature if temperature is None else temperature,
            stop_sequences=self.config.stop_sequences,
            throughput_mode=self.config.throughput_mode,
        )

        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(
            None,
            lambda: self.service.generate_response(
                messages=messages,
                system_prompt=system_prompt,
                config=cfg,
                tools=tool_defs,
            ),
        )
        logger.debug(f"Model usage: {result.input_tokens} in / {result.output_tokens} out")

        calls = tuple(
            ToolCall(id=tu.id or f"call_{uuid.uuid4().hex[:12]}", name=tu.name, args=dict(tu.input or {}))
            for tu in result.tool_uses
        )
        return Message(role=ROLE_ASSISTANT, content=result.content, tool_calls=calls)


class TurnExecutor:
    """One model call bound to the workflow prompt and current tool catalogue."""

    def __init__(self, model_client: ModelClient, workflow: WorkflowKind = WorkflowKind.ADR,
                 temperature: Optional[float] = None):
        self.model_client = model_client
        self.workflow = workflow
        self.temperature = temperature
        self.system_prompt = question_system_prompt(workflow)

    async def execute(self, history: List[Message], tools: List[ToolDescriptor]) -> Message:
        logger.debug(f"Turn: {len(history)} messages, {len(tools)} tools")
        reply = await self.model_client.invoke(
            history, tools, system_prompt=self.system_prompt, temperature=self.temperature,
        )
        if reply.role != ROLE_ASSISTANT:
            raise ValueError(f"Model client returned a {reply.role!r} message")
        return reply

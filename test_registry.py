"""Tests for tool discovery, validation and routing."""

import pytest

from conftest import FakeToolProvider, search_tool
from planner.errors import ToolExecutionError
from planner.models import ToolCall, ToolDescriptor
from tools.dispatch import interrupt_from_call, reserved_args_error, reserved_kind
from tools.registry import ToolRegistry


def _issue_tool() -> ToolDescriptor:
    return ToolDescriptor(provider_id="tracker", tool_name="get-issue", description="Fetch an issue",
                          input_schema={"type": "object", "properties": {"id": {"type": "integer"}},
                                        "required": ["id"]})


@pytest.mark.asyncio
async def test_failed_provider_is_omitted_from_catalogue():
    good = FakeToolProvider("docs", [search_tool()])
    bad = FakeToolProvider("broken", [search_tool("broken")], fail_connect=True)
    registry = ToolRegistry([bad, good])

    catalogue = await registry.discover()

    assert [t.qualified_name for t in catalogue] == ["docs__search"]
    assert catalogue[0].provider_id == "docs"
    assert bad.disconnects == 1


@pytest.mark.asyncio
async def test_discovery_is_stable_until_refresh():
    provider = FakeToolProvider("docs", [search_tool()])
    registry = ToolRegistry([provider])
    await registry.discover()

    provider.tools.append(ToolDescriptor(provider_id="docs", tool_name="fetch"))
    assert len(await registry.discover()) == 1
    assert provider.connects == 1

    refreshed = await registry.refresh()
    assert [t.tool_name for t in refreshed] == ["search", "fetch"]


@pytest.mark.asyncio
async def test_invoke_routes_to_owner_with_local_name():
    docs = FakeToolProvider("docs", [search_tool()], responses={"search": "found it"})
    tracker = FakeToolProvider("tracker", [_issue_tool()], responses={"get-issue": "#42: dark mode"})
    registry = ToolRegistry([docs, tracker])
    await registry.discover()

    result = await registry.invoke("tracker__get-issue", {"id": 42}, call_id="c1")

    assert result.tool_call_id == "c1"
    assert result.output == "#42: dark mode"
    assert tracker.calls == [("get-issue", {"id": 42})]
    assert docs.calls == []


@pytest.mark.asyncio
async def test_schema_violation_is_an_error_result():
    tracker = FakeToolProvider("tracker", [_issue_tool()])
    registry = ToolRegistry([tracker])
    await registry.discover()

    result = await registry.invoke("tracker__get-issue", {"id": "forty-two"}, call_id="c1")

    assert result.is_error
    assert "id" in result.error_text
    assert tracker.calls == []
    message = result.to_message()
    assert message.is_error and message.content.startswith("Error: ")


@pytest.mark.asyncio
async def test_provider_failures_become_error_results():
    tracker = FakeToolProvider("tracker", [_issue_tool()],
                               responses={"get-issue": ToolExecutionError("tracker offline")})
    registry = ToolRegistry([tracker])
    await registry.discover()

    result = await registry.invoke("tracker__get-issue", {"id": 1}, call_id="c1")
    assert result.error_text == "tracker offline"

    tracker.responses["get-issue"] = RuntimeError("boom")
    result = await registry.invoke("tracker__get-issue", {"id": 1}, call_id="c2")
    assert result.is_error and "boom" in result.error_text


@pytest.mark.asyncio
async def test_unknown_tool_and_non_object_args():
    registry = ToolRegistry([])
    await registry.discover()
    assert (await registry.invoke("nope", {})).error_text == "Unknown tool: nope"

    tracker = FakeToolProvider("tracker", [_issue_tool()])
    registry = ToolRegistry([tracker])
    await registry.discover()
    result = await registry.invoke("tracker__get-issue", ["not", "a", "dict"])
    assert result.is_error


@pytest.mark.asyncio
async def test_invalid_declared_schema_skips_validation():
    weird = ToolDescriptor(provider_id="x", tool_name="t", input_schema={"type": "not-a-type"})
    provider = FakeToolProvider("x", [weird])
    registry = ToolRegistry([provider])
    await registry.discover()

    result = await registry.invoke("x__t", {"anything": 1})
    assert not result.is_error


def test_qualified_names_are_sanitised():
    tool = ToolDescriptor(provider_id="my server", tool_name="read.file")
    assert tool.qualified_name == "my_server__read_file"
    assert len(ToolDescriptor(provider_id="p" * 60, tool_name="t" * 60).qualified_name) == 64


def test_reserved_call_helpers():
    ask = ToolCall(id="a", name="ask-human", args={"question": " Why? ", "context": "found two configs"})
    assert reserved_kind(ask) == "ask-human"
    assert reserved_kind(ToolCall(id="b", name="docs__search")) is None
    assert reserved_args_error(ask) is None

    interrupt = interrupt_from_call(ask)
    assert interrupt.question == "Why?"
    assert interrupt.context == "found two configs"
    assert interrupt.options == []

    no_question = ToolCall(id="c", name="ask-human", args={})
    assert "question" in reserved_args_error(no_question)

    too_many = ToolCall(id="d", name="present-choice", args={"question": "?", "options": list("abcdef")})
    assert reserved_args_error(too_many) is not None

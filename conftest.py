"""Shared fakes and fixtures for the planner tests."""

import json
from typing import Any, Dict, List, Optional

import pytest

from planner.core import FeaturePlanner, PlannerContext
from planner.errors import ProviderDiscoveryError, ToolExecutionError
from planner.executor import ModelClient
from planner.models import ROLE_ASSISTANT, Message, ToolCall, ToolDescriptor, ToolResult, WorkflowKind
from repo_packager import PackResult, SnapshotProvider, summarize_pack
from sessions import SessionStore
from tools.provider import ToolProvider
from tools.registry import ToolRegistry

PACKED_CODEBASE = (
    '<file path="src/app.js">\nconst theme = "light";\n</file>\n'
    '<file path="src/styles.css">\n:root { --bg: white; }\n</file>\n'
)

DARK_MODE_QUESTION = """# Dark Mode Toggle

The app already themes through CSS variables in `src/styles.css`.

**Where should the user's theme preference be stored?**

1. **Local storage**
   Fast and simple, per device.

2. **User profile**
   Synced across devices through the API.

3. **Both**
   Local cache with server sync.
"""


def ready_json(ready: bool, reasoning: str = "") -> str:
    return json.dumps({
        "ready": ready,
        "missingInformation": [] if ready else ["Storage location"],
        "reasoning": reasoning or ("All requirements known" if ready else "Storage undecided"),
    })


def assistant(content: str = "", *calls: ToolCall) -> Message:
    return Message(role=ROLE_ASSISTANT, content=content, tool_calls=tuple(calls))


class FakeModelClient(ModelClient):
    """Scripted model. Calls are routed by prompt: readiness, planning turn or generation."""

    def __init__(self, turns: Optional[List[Message]] = None, readiness: Optional[List[str]] = None,
                 documents: Optional[List[str]] = None, default_turn: Optional[Message] = None):
        self.turns = list(turns or [])
        self.readiness = list(readiness or [])
        self.documents = list(documents or [])
        self.default_turn = default_turn
        self.turn_calls: List[Dict[str, Any]] = []
        self.readiness_calls: List[Dict[str, Any]] = []
        self.generation_calls: List[Dict[str, Any]] = []

    async def invoke(self, history, tools, system_prompt=None, temperature=None) -> Message:
        call = {
            "history": list(history),
            "tools": list(tools),
            "system_prompt": system_prompt or "",
            "temperature": temperature,
        }
        if "evaluating if enough information" in call["system_prompt"]:
            self.readiness_calls.append(call)
            text = self.readiness.pop(0) if self.readiness else ready_json(False)
            return Message(role=ROLE_ASSISTANT, content=text)
        if tools:
            self.turn_calls.append(call)
            if self.turns:
                return self.turns.pop(0)
            if self.default_turn is not None:
                return self.default_turn
            raise AssertionError("model asked for an unscripted turn")
        self.generation_calls.append(call)
        return Message(role=ROLE_ASSISTANT, content=self.documents.pop(0))

    @property
    def total_calls(self) -> int:
        return len(self.turn_calls) + len(self.readiness_calls) + len(self.generation_calls)


class FakeSnapshotProvider(SnapshotProvider):
    def __init__(self, content: str = PACKED_CODEBASE, fingerprint: str = "tree-v1"):
        self.content = content
        self.fingerprint = fingerprint
        self.pack_calls = 0

    def fingerprint_input(self) -> str:
        return self.fingerprint

    def pack(self, subpath=None) -> PackResult:
        self.pack_calls += 1
        return PackResult(content=self.content, fingerprint_input=self.fingerprint,
                          summary=summarize_pack(self.content))


class FakeToolProvider(ToolProvider):
    def __init__(self, provider_id: str, tools: List[ToolDescriptor], responses: Optional[Dict[str, Any]] = None,
                 fail_connect: bool = False):
        super().__init__(provider_id)
        self.tools = tools
        self.responses = responses or {}
        self.fail_connect = fail_connect
        self.calls: List[tuple] = []
        self.connects = 0
        self.disconnects = 0

    async def connect(self) -> None:
        self.connects += 1
        if self.fail_connect:
            raise ProviderDiscoveryError(f"{self.provider_id} refused connection")

    async def list_tools(self) -> List[ToolDescriptor]:
        return list(self.tools)

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolResult:
        self.calls.append((name, dict(args)))
        response = self.responses.get(name, f"{name} ok")
        if isinstance(response, Exception):
            raise response
        return ToolResult(tool_call_id="", output=response)

    async def disconnect(self) -> None:
        self.disconnects += 1


def search_tool(provider_id: str = "docs") -> ToolDescriptor:
    return ToolDescriptor(
        provider_id=provider_id,
        tool_name="search",
        description="Search project documentation",
        input_schema={
            "type": "object",
            "properties": {"query": {"type": "string"}, "limit": {"type": "integer", "minimum": 1}},
            "required": ["query"],
        },
    )


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "sessions"))


@pytest.fixture
def snapshot():
    return FakeSnapshotProvider()


@pytest.fixture
def docs_provider():
    return FakeToolProvider("docs", [search_tool()], responses={"search": "Theme tokens live in styles.css"})


@pytest.fixture
def registry(docs_provider):
    return ToolRegistry([docs_provider])


@pytest.fixture
def model():
    return FakeModelClient()


def make_context(tmp_path, store, snapshot, registry, model, workflow=WorkflowKind.ADR) -> PlannerContext:
    return PlannerContext(
        project_path=str(tmp_path),
        store=store,
        snapshot=snapshot,
        registry=registry,
        model_client=model,
        workflow=workflow,
    )


@pytest.fixture
def context(tmp_path, store, snapshot, registry, model):
    return make_context(tmp_path, store, snapshot, registry, model)


@pytest.fixture
def planner(context):
    return FeaturePlanner(context)

"""
Planning data types: conversation messages, tool calls, parsed questions,
readiness evaluations and the persisted session record.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import SessionCorruption

SESSION_VERSION = 1

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"
ROLES = (ROLE_USER, ROLE_ASSISTANT, ROLE_TOOL)

_TOOL_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionPhase(str, Enum):
    """Session lifecycle states, in their only legal order."""
    FRESH = "fresh"
    CODEBASE_PACKED = "codebase_packed"
    CHAT_INITIALIZED = "chat_initialized"
    PLANNING = "planning"
    COMPLETED = "completed"

    @property
    def index(self) -> int:
        return PHASE_ORDER.index(self)


PHASE_ORDER: List[SessionPhase] = [
    SessionPhase.FRESH,
    SessionPhase.CODEBASE_PACKED,
    SessionPhase.CHAT_INITIALIZED,
    SessionPhase.PLANNING,
    SessionPhase.COMPLETED,
]


class WorkflowKind(str, Enum):
    ADR = "adr"
    PRD = "prd"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": dict(self.args)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        args = data.get("args") or {}
        if not isinstance(args, dict):
            raise ValueError(f"tool call args must be an object, got {type(args).__name__}")
        return cls(id=str(data["id"]), name=str(data["name"]), args=args)


@dataclass(frozen=True)
class Message:
    """One entry of the append-only conversation history."""
    role: str
    content: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    is_error: bool = False

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["toolCalls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["toolCallId"] = self.tool_call_id
        if self.is_error:
            data["isError"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data["role"]
        if role not in ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        content = data.get("content", "")
        if not isinstance(content, str):
            raise ValueError("message content must be a string")
        tool_calls = tuple(ToolCall.from_dict(tc) for tc in data.get("toolCalls") or [])
        tool_call_id = data.get("toolCallId")
        if role == ROLE_TOOL and not tool_call_id:
            raise ValueError("tool message without toolCallId")
        return cls(
            role=role,
            content=content,
            tool_calls=tool_calls,
            tool_call_id=tool_call_id,
            is_error=bool(data.get("isError", False)),
        )


def user_message(content: str) -> Message:
    return Message(role=ROLE_USER, content=content)


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable tool, tagged with the provider that owns it."""
    provider_id: str
    tool_name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        """Name exposed to the model; routes calls back to the owning provider."""
        if not self.provider_id:
            return self.tool_name
        return _TOOL_NAME_UNSAFE.sub("_", f"{self.provider_id}__{self.tool_name}")[:64]


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    output: Optional[str] = None
    error_text: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_text is not None

    def to_message(self) -> Message:
        if self.is_error:
            return Message(role=ROLE_TOOL, content=f"Error: {self.error_text}",
                           tool_call_id=self.tool_call_id, is_error=True)
        return Message(role=ROLE_TOOL, content=self.output or "(no output)", tool_call_id=self.tool_call_id)


@dataclass
class Option:
    id: str
    title: str
    description: str = ""
    recommended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "description": self.description,
                "recommended": self.recommended}


@dataclass
class PlanningQuestion:
    header: str
    body_text: str = ""
    option_prompt: str = ""
    options: List[Option] = field(default_factory=list)

    @property
    def recommended_option(self) -> Optional[Option]:
        for opt in self.options:
            if opt.recommended:
                return opt
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": self.header,
            "bodyText": self.body_text,
            "optionPrompt": self.option_prompt,
            "options": [o.to_dict() for o in self.options],
        }


@dataclass
class ReadinessEvaluation:
    ready: bool
    missing_information: List[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class HumanInterrupt:
    """Suspend signal raised when the model calls a reserved pseudo-tool."""
    tool_call_id: str
    kind: str
    question: str
    options: List[str] = field(default_factory=list)
    context: str = ""

    def to_question(self) -> PlanningQuestion:
        options = [
            Option(id=str(i), title=text, recommended=(i == 1))
            for i, text in enumerate(self.options, start=1)
        ]
        return PlanningQuestion(
            header="Input needed",
            body_text=self.context,
            option_prompt=self.question,
            options=options,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toolCallId": self.tool_call_id,
            "kind": self.kind,
            "question": self.question,
            "options": list(self.options),
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HumanInterrupt":
        return cls(
            tool_call_id=str(data["toolCallId"]),
            kind=str(data["kind"]),
            question=str(data.get("question", "")),
            options=[str(o) for o in data.get("options") or []],
            context=str(data.get("context", "")),
        )


@dataclass
class TurnOutcome:
    """Result of advancing a session: a question for the human, or readiness for generation."""
    QUESTION = "question"
    INTERRUPT = "interrupt"
    READY = "ready"

    session_id: str
    kind: str
    question: Optional[PlanningQuestion] = None
    interrupt: Optional[HumanInterrupt] = None

    @property
    def ready_for_generation(self) -> bool:
        return self.kind == self.READY

    @property
    def is_suspended(self) -> bool:
        return self.kind == self.INTERRUPT


@dataclass
class DecisionDocument:
    kind: str
    title: str
    content: str
    number: str = ""
    implementation_plan: str = ""
    sections: List[Dict[str, str]] = field(default_factory=list)
    filename: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "content": self.content,
            "number": self.number,
            "implementationPlan": self.implementation_plan,
            "sections": [dict(s) for s in self.sections],
            "filename": self.filename,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionDocument":
        return cls(
            kind=str(data["kind"]),
            title=str(data.get("title", "")),
            content=str(data.get("content", "")),
            number=str(data.get("number", "")),
            implementation_plan=str(data.get("implementationPlan", "")),
            sections=[dict(s) for s in data.get("sections") or []],
            filename=str(data.get("filename", "")),
        )


@dataclass
class SessionRecord:
    """Everything persisted about one planning session."""
    feature_request: str = ""
    workflow_kind: WorkflowKind = WorkflowKind.ADR
    phase: SessionPhase = SessionPhase.FRESH
    history: List[Message] = field(default_factory=list)
    codebase_content: Optional[str] = None
    codebase_hash: Optional[str] = None
    pack_summary: Optional[Dict[str, Any]] = None
    last_codebase_update: Optional[str] = None
    generation_ready: bool = False
    pending_interrupt: Optional[HumanInterrupt] = None
    document: Optional[DecisionDocument] = None
    last_updated: str = ""

    def append(self, message: Message) -> None:
        self.history.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SESSION_VERSION,
            "featureData": {
                "featureRequest": self.feature_request,
                "workflow": self.workflow_kind.value,
                "generationReady": self.generation_ready,
                "document": self.document.to_dict() if self.document else None,
            },
            "chatHistory": [m.to_dict() for m in self.history],
            "machineState": self.phase.value,
            "codebaseContent": self.codebase_content,
            "codebaseHash": self.codebase_hash,
            "lastCodebaseUpdate": self.last_codebase_update,
            "packSummary": self.pack_summary,
            "pendingInterrupt": self.pending_interrupt.to_dict() if self.pending_interrupt else None,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Any, path: Optional[str] = None) -> "SessionRecord":
        """Rebuild a record from its persisted form. Raises SessionCorruption; never repairs."""
        if not isinstance(data, dict):
            raise SessionCorruption("Session document is not an object", path)
        feature = data.get("featureData")
        history_raw = data.get("chatHistory")
        if not isinstance(feature, dict) or not isinstance(history_raw, list):
            raise SessionCorruption("Invalid session file format. Missing featureData or chatHistory", path)

        try:
            history = [Message.from_dict(m) for m in history_raw]
            workflow = WorkflowKind(feature.get("workflow") or WorkflowKind.ADR.value)
            document = DecisionDocument.from_dict(feature["document"]) if feature.get("document") else None
            pending = data.get("pendingInterrupt")
            interrupt = HumanInterrupt.from_dict(pending) if pending else None
            state = data.get("machineState")
            phase = SessionPhase(state) if state else None
        except (KeyError, TypeError, ValueError) as e:
            raise SessionCorruption(f"Invalid session contents ({e})", path) from e

        record = cls(
            feature_request=str(feature.get("featureRequest", "")),
            workflow_kind=workflow,
            history=history,
            codebase_content=data.get("codebaseContent"),
            codebase_hash=data.get("codebaseHash"),
            pack_summary=data.get("packSummary"),
            last_codebase_update=data.get("lastCodebaseUpdate"),
            generation_ready=bool(feature.get("generationReady", False)),
            pending_interrupt=interrupt,
            document=document,
            last_updated=str(data.get("lastUpdated", "")),
        )
        record.phase = phase if phase is not None else determine_phase(record)
        return record


def determine_phase(record: SessionRecord) -> SessionPhase:
    """Infer the lifecycle phase of a record that carries no stored state."""
    if record.document is not None:
        return SessionPhase.COMPLETED
    if record.history:
        return SessionPhase.PLANNING
    if record.codebase_content:
        return SessionPhase.CODEBASE_PACKED
    return SessionPhase.FRESH

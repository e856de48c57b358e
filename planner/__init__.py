"""
Planning core: turn loop, session lifecycle and response parsing.
Import the service from planner.core; this package root only carries the
shared types so that sessions and tools can depend on it.
"""

from .errors import (  # noqa: F401
    PlannerError,
    MaxTurnsExceeded,
    SessionCorruption,
    SessionNotFound,
    PhaseError,
    ToolExecutionError,
    ProviderDiscoveryError,
    SnapshotError,
)
from .models import (  # noqa: F401
    SessionPhase,
    WorkflowKind,
    Message,
    ToolCall,
    ToolDescriptor,
    ToolResult,
    Option,
    PlanningQuestion,
    ReadinessEvaluation,
    HumanInterrupt,
    TurnOutcome,
    DecisionDocument,
    SessionRecord,
)

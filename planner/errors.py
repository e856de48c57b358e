"""
Exception types raised by the planning core.
"""

from typing import Optional


class PlannerError(Exception):
    """Base class for planning errors"""
    pass


class MaxTurnsExceeded(PlannerError):
    """The conversation did not converge within the turn budget."""

    def __init__(self, turns: int):
        super().__init__(f"Maximum conversation turns reached ({turns}) without a question or readiness.")
        self.turns = turns


class SessionCorruption(PlannerError):
    """A persisted session is unreadable or structurally invalid."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"{message}: {path}" if path else message)
        self.path = path


class SessionNotFound(PlannerError):
    pass


class PhaseError(PlannerError):
    """Operation not allowed in the session's current phase."""
    pass


class ToolExecutionError(PlannerError):
    """A tool provider failed to execute a call."""
    pass


class ProviderDiscoveryError(PlannerError):
    """A tool provider could not be connected or listed."""
    pass


class SnapshotError(PlannerError):
    """The codebase snapshot could not be produced."""
    pass

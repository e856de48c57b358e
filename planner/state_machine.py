"""
Session lifecycle state machine.

Phases only move forward: fresh -> codebase_packed -> chat_initialized ->
planning -> completed. Each intermediate phase's side effect runs once on the
way through. The machine owns the SessionRecord and is the only thing that
persists it.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fingerprint import digest
from repo_packager import SnapshotProvider
from sessions import SessionStore

from .errors import PhaseError, SessionNotFound
from .models import (
    PHASE_ORDER, DecisionDocument, HumanInterrupt, Message, ReadinessEvaluation, SessionPhase,
    SessionRecord, ToolResult, WorkflowKind, determine_phase, now_iso, user_message,
)
from .prompts import seed_message

logger = logging.getLogger(__name__)

__all__ = ["SessionStateMachine", "determine_phase"]


class SessionStateMachine:

    def __init__(self, session_id: str, record: SessionRecord, store: SessionStore,
                 snapshot: SnapshotProvider):
        self.session_id = session_id
        self.record = record
        self.store = store
        self.snapshot = snapshot
        self.pack_count = 0

    @classmethod
    def create(cls, session_id: str, feature_request: str, workflow: WorkflowKind,
               store: SessionStore, snapshot: SnapshotProvider) -> "SessionStateMachine":
        record = SessionRecord(feature_request=feature_request, workflow_kind=workflow)
        return cls(session_id, record, store, snapshot)

    @classmethod
    def load(cls, session_id: str, store: SessionStore, snapshot: SnapshotProvider) -> "SessionStateMachine":
        """Load a persisted session. SessionCorruption propagates untouched."""
        record = store.load(session_id)
        if record is None:
            raise SessionNotFound(f"Session not found: {session_id}")
        logger.info(f"Loaded session {session_id} in phase {record.phase.value}")
        return cls(session_id, record, store, snapshot)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self.record.phase

    @property
    def is_completed(self) -> bool:
        return self.record.phase == SessionPhase.COMPLETED

    async def transition_to(self, target: SessionPhase) -> SessionPhase:
        """Walk forward to `target`, running each entered phase's side effect.

        Backward or same-phase transitions are ignored.
        """
        current = self.record.phase
        if target.index <= current.index:
            if target.index < current.index:
                logger.debug(f"Ignoring backward transition {current.value} -> {target.value}")
            return current

        for phase in PHASE_ORDER[current.index + 1:target.index + 1]:
            await self._enter(phase)
            logger.info(f"Session {self.session_id}: {self.record.phase.value} -> {phase.value}")
            self.record.phase = phase
        self.checkpoint()
        return self.record.phase

    async def _enter(self, phase: SessionPhase) -> None:
        if phase == SessionPhase.CODEBASE_PACKED:
            await self.pack_codebase()
        elif phase == SessionPhase.CHAT_INITIALIZED:
            self.initialize_chat()
        elif phase == SessionPhase.COMPLETED:
            if self.record.document is None:
                raise PhaseError("Cannot complete a session without a generated document")

    # ------------------------------------------------------------------
    # Codebase snapshot
    # ------------------------------------------------------------------

    async def pack_codebase(self, force: bool = False) -> bool:
        """Reuse the stored snapshot when the fingerprint still matches; otherwise pack.

        Returns True when the snapshot provider was invoked.
        """
        loop = asyncio.get_event_loop()
        current_hash = digest(await loop.run_in_executor(None, self.snapshot.fingerprint_input))

        if not force and self.record.codebase_content and self.record.codebase_hash == current_hash:
            logger.info(f"Codebase unchanged ({current_hash}), reusing cached snapshot")
            return False

        if self.record.codebase_hash:
            logger.info(f"Codebase changed ({self.record.codebase_hash} -> {current_hash}), repacking")
        else:
            logger.info("No cached snapshot, packing codebase")

        result = await loop.run_in_executor(None, self.snapshot.pack)
        self.pack_count += 1
        self.record.codebase_content = result.content
        self.record.codebase_hash = digest(result.fingerprint_input)
        self.record.pack_summary = result.summary.to_dict()
        self.record.last_codebase_update = now_iso()
        return True

    async def ensure_codebase(self) -> bool:
        """Validate the snapshot of a resumed session, repacking only on change."""
        if self.record.phase.index < SessionPhase.CODEBASE_PACKED.index:
            await self.transition_to(SessionPhase.CODEBASE_PACKED)
            return self.pack_count > 0
        changed = await self.pack_codebase()
        if changed:
            self.checkpoint()
        return changed

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def initialize_chat(self) -> None:
        if self.record.history:
            logger.info(f"Restored {len(self.record.history)} message(s) of chat history")
            return
        self.record.append(user_message(seed_message(self.record.feature_request, self.record.codebase_content)))

    def append(self, message: Message) -> None:
        if self.is_completed:
            raise PhaseError("Session is completed; its history is read-only")
        self.record.append(message)

    def set_interrupt(self, interrupt: HumanInterrupt) -> None:
        self.record.pending_interrupt = interrupt

    def receive_reply(self, reply: str) -> None:
        """Record the human's reply: it answers a pending pseudo-tool call, or is a plain user turn."""
        pending = self.record.pending_interrupt
        if pending is not None:
            self.append(ToolResult(tool_call_id=pending.tool_call_id, output=f"User answered: {reply}").to_message())
            self.record.pending_interrupt = None
        else:
            self.append(user_message(reply))

    def mark_ready(self, evaluation: ReadinessEvaluation) -> None:
        self.record.generation_ready = True
        logger.info(f"Session {self.session_id} ready for generation: {evaluation.reasoning}")

    async def complete(self, document: DecisionDocument) -> None:
        if self.is_completed:
            raise PhaseError("Session is already completed")
        self.record.document = document
        await self.transition_to(SessionPhase.COMPLETED)

    def checkpoint(self) -> None:
        self.store.save(self.session_id, self.record)

    def state_info(self) -> Dict[str, Any]:
        return {
            "state": self.record.phase.value,
            "has_codebase": bool(self.record.codebase_content),
            "has_chat_history": bool(self.record.history),
            "is_completed": self.is_completed,
            "generation_ready": self.record.generation_ready,
            "awaiting_human": self.record.pending_interrupt is not None,
            "session_id": self.session_id,
        }

    @property
    def pending_interrupt(self) -> Optional[HumanInterrupt]:
        return self.record.pending_interrupt

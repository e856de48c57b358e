"""
FeaturePlanner: the surface exposed to CLI/UI code.

    planner = FeaturePlanner(PlannerContext.for_project("."))
    outcome = await planner.start_session("add dark mode toggle")
    while not outcome.ready_for_generation:
        outcome = await planner.continue_session(outcome.session_id, answer(outcome))
    document = await planner.generate_document(outcome.session_id)
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from backend import get_backend
from config import app_config, model_config
from repo_packager import RepomixPackager, SnapshotProvider
from sessions import SessionStore
from tools.mcp_config import build_providers
from tools.registry import ToolRegistry

from .errors import PhaseError, PlannerError
from .executor import BedrockModelClient, ModelClient, TurnExecutor
from .generation import generator_for
from .models import DecisionDocument, SessionPhase, TurnOutcome, WorkflowKind
from .orchestrator import ConversationOrchestrator
from .readiness import ReadinessEvaluator
from .state_machine import SessionStateMachine

logger = logging.getLogger(__name__)


@dataclass
class PlannerContext:
    """Everything a planner needs, passed explicitly rather than held globally."""
    project_path: str
    store: SessionStore
    snapshot: SnapshotProvider
    registry: ToolRegistry
    model_client: ModelClient
    workflow: WorkflowKind = WorkflowKind.ADR
    max_turns: int = 10
    question_temperature: Optional[float] = None
    readiness_temperature: Optional[float] = 0.0
    generation_temperature: Optional[float] = 0.7

    @classmethod
    def for_project(cls, project_path: str = ".", workflow: Optional[WorkflowKind] = None,
                    model_client: Optional[ModelClient] = None, with_tools: bool = True) -> "PlannerContext":
        """Wire the default collaborators from configuration."""
        project_path = os.path.abspath(project_path)
        backend = get_backend(project_path)
        providers = build_providers(project_path, app_config.state_dir_name) if with_tools else []
        return cls(
            project_path=project_path,
            store=SessionStore.for_project(project_path, app_config.state_dir_name),
            snapshot=RepomixPackager(
                backend,
                command=app_config.pack_command,
                timeout=app_config.pack_timeout,
                fingerprint_limit=app_config.fingerprint_sample_limit,
            ),
            registry=ToolRegistry(providers),
            model_client=model_client or BedrockModelClient(),
            workflow=workflow or WorkflowKind(app_config.default_workflow),
            max_turns=app_config.max_turns,
            question_temperature=model_config.temperature,
            readiness_temperature=model_config.readiness_temperature,
            generation_temperature=model_config.generation_temperature,
        )


class FeaturePlanner:
    """Starts, continues and finishes planning sessions, one turn at a time."""

    def __init__(self, context: PlannerContext):
        self.context = context
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Upstream calls
    # ------------------------------------------------------------------

    async def start_session(self, feature_request: str, workflow: Optional[WorkflowKind] = None,
                            session_id: Optional[str] = None) -> TurnOutcome:
        if not feature_request or not feature_request.strip():
            raise ValueError("Feature request must not be empty")
        ctx = self.context
        workflow = workflow or ctx.workflow

        async with self._lock:
            if session_id is None:
                session_id = ctx.store.make_session_id(feature_request)
            elif ctx.store.exists(session_id):
                raise PlannerError(f"Session already exists: {session_id}")

            logger.info(f"Starting {workflow.value} session {session_id}")
            machine = SessionStateMachine.create(session_id, feature_request.strip(), workflow,
                                                 ctx.store, ctx.snapshot)
            machine.checkpoint()
            await machine.transition_to(SessionPhase.CHAT_INITIALIZED)
            await self._ensure_tools()
            return await self._orchestrator(workflow).run_turn(machine)

    async def continue_session(self, session_id: str, reply: str) -> TurnOutcome:
        ctx = self.context
        async with self._lock:
            machine = SessionStateMachine.load(session_id, ctx.store, ctx.snapshot)
            if machine.is_completed:
                raise PhaseError(f"Session {session_id} is completed")

            await machine.ensure_codebase()
            await machine.transition_to(SessionPhase.CHAT_INITIALIZED)
            machine.receive_reply(reply)
            machine.checkpoint()

            await self._ensure_tools()
            return await self._orchestrator(machine.record.workflow_kind).run_turn(machine)

    async def resume_session(self, session_id: str) -> TurnOutcome:
        """Re-enter a session without a new reply (e.g. after a restart)."""
        ctx = self.context
        async with self._lock:
            machine = SessionStateMachine.load(session_id, ctx.store, ctx.snapshot)
            if machine.is_completed:
                raise PhaseError(f"Session {session_id} is completed")
            await machine.ensure_codebase()
            await machine.transition_to(SessionPhase.CHAT_INITIALIZED)
            await self._ensure_tools()
            return await self._orchestrator(machine.record.workflow_kind).run_turn(machine)

    async def generate_document(self, session_id: str) -> DecisionDocument:
        ctx = self.context
        async with self._lock:
            machine = SessionStateMachine.load(session_id, ctx.store, ctx.snapshot)
            record = machine.record
            if record.document is not None:
                return record.document
            if not record.generation_ready:
                raise PhaseError(f"Session {session_id} is not ready for document generation")

            generator = generator_for(record.workflow_kind, ctx.model_client, ctx.generation_temperature)
            document = await generator.generate(record)
            await machine.complete(document)
            logger.info(f"Session {session_id} completed: {document.filename}")
            return document

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def list_sessions(self) -> List[Dict[str, Any]]:
        return self.context.store.list()

    def state_info(self, session_id: str) -> Dict[str, Any]:
        ctx = self.context
        return SessionStateMachine.load(session_id, ctx.store, ctx.snapshot).state_info()

    async def refresh_tools(self) -> int:
        tools = await self.context.registry.refresh()
        return len(tools)

    async def close(self) -> None:
        await self.context.registry.close()

    async def _ensure_tools(self) -> None:
        if not self.context.registry.discovered:
            await self.context.registry.discover()

    def _orchestrator(self, workflow: WorkflowKind) -> ConversationOrchestrator:
        ctx = self.context
        return ConversationOrchestrator(
            executor=TurnExecutor(ctx.model_client, workflow, temperature=ctx.question_temperature),
            evaluator=ReadinessEvaluator(ctx.model_client, workflow, temperature=ctx.readiness_temperature),
            registry=ctx.registry,
            max_turns=ctx.max_turns,
        )

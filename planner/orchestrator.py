"""
Conversation orchestrator: the planning turn loop.

Each iteration checks readiness first, then asks the model for the next turn.
Ordinary tool calls are executed and fed back without returning to the caller;
calls to the reserved pseudo-tools suspend the loop with the session persisted
so the human's answer can resume it later, even from a new process.
"""

import logging
from typing import List, Optional, Tuple

from tools.dispatch import execute_tool_calls, interrupt_from_call, reserved_args_error, reserved_kind
from tools.registry import ToolRegistry
from tools.schemas import reserved_tool_descriptors

from .errors import MaxTurnsExceeded, PhaseError
from .executor import TurnExecutor
from .models import ROLE_ASSISTANT, HumanInterrupt, SessionPhase, ToolCall, ToolDescriptor, ToolResult, TurnOutcome
from .parser import parse_response
from .readiness import ReadinessEvaluator
from .state_machine import SessionStateMachine

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10

_ONE_QUESTION_AT_A_TIME = "Only one question can be put to the user at a time. Ask again after the user answers."


class ConversationOrchestrator:

    def __init__(self, executor: TurnExecutor, evaluator: ReadinessEvaluator, registry: ToolRegistry,
                 max_turns: int = DEFAULT_MAX_TURNS):
        self.executor = executor
        self.evaluator = evaluator
        self.registry = registry
        self.max_turns = max_turns

    def tool_catalogue(self) -> List[ToolDescriptor]:
        return self.registry.catalogue + reserved_tool_descriptors()

    async def run_turn(self, machine: SessionStateMachine) -> TurnOutcome:
        """Advance the session until there is a question for the human or it is ready.

        Raises MaxTurnsExceeded when the budget runs out; the session stays
        persisted as of the last completed iteration.
        """
        record = machine.record
        sid = machine.session_id

        if machine.is_completed:
            raise PhaseError(f"Session {sid} is already completed")
        if record.pending_interrupt is not None:
            return self._suspend(sid, record.pending_interrupt)
        if record.generation_ready:
            return TurnOutcome(session_id=sid, kind=TurnOutcome.READY)

        awaiting = self._awaiting_reply(machine)
        if awaiting is not None:
            return awaiting

        if machine.phase.index < SessionPhase.PLANNING.index:
            await machine.transition_to(SessionPhase.PLANNING)

        tools = self.tool_catalogue()
        for turn in range(1, self.max_turns + 1):
            logger.debug(f"Session {sid}: turn {turn}/{self.max_turns}")

            evaluation = await self.evaluator.evaluate(record.history)
            if evaluation.ready:
                machine.mark_ready(evaluation)
                machine.checkpoint()
                return TurnOutcome(session_id=sid, kind=TurnOutcome.READY)

            reply = await self.executor.execute(record.history, tools)
            machine.append(reply)

            if reply.has_tool_calls:
                interrupt = await self._dispatch(machine, reply.tool_calls)
                machine.checkpoint()
                if interrupt is not None:
                    return self._suspend(sid, interrupt)
                continue

            machine.checkpoint()
            question = parse_response(reply.content)
            logger.info(f"Session {sid}: question '{question.header}' with {len(question.options)} option(s)")
            return TurnOutcome(session_id=sid, kind=TurnOutcome.QUESTION, question=question)

        logger.error(f"Session {sid}: no question or readiness after {self.max_turns} turns")
        raise MaxTurnsExceeded(self.max_turns)

    async def _dispatch(self, machine: SessionStateMachine, calls: Tuple[ToolCall, ...]) -> Optional[HumanInterrupt]:
        """Answer the calls in the order the model made them, suspending on the first usable pseudo-tool call.

        Every call except the suspended one gets its result appended here, in call
        order. The suspended call is answered later by the human's reply, so its
        result lands after the rest of the batch.
        """
        interrupt: Optional[HumanInterrupt] = None
        for call in calls:
            if reserved_kind(call) is None:
                for result in await execute_tool_calls(self.registry, [call]):
                    machine.append(result.to_message())
                continue
            if interrupt is not None:
                machine.append(ToolResult(tool_call_id=call.id, error_text=_ONE_QUESTION_AT_A_TIME).to_message())
                continue
            error = reserved_args_error(call)
            if error:
                logger.warning(f"Rejected {call.name} call: {error}")
                machine.append(ToolResult(tool_call_id=call.id, error_text=error).to_message())
                continue
            interrupt = interrupt_from_call(call)

        if interrupt is not None:
            machine.set_interrupt(interrupt)
            logger.info(f"Session {machine.session_id}: suspended on {interrupt.kind}")
        return interrupt

    @staticmethod
    def _suspend(session_id: str, interrupt: HumanInterrupt) -> TurnOutcome:
        return TurnOutcome(session_id=session_id, kind=TurnOutcome.INTERRUPT,
                           question=interrupt.to_question(), interrupt=interrupt)

    @staticmethod
    def _awaiting_reply(machine: SessionStateMachine) -> Optional[TurnOutcome]:
        """The last question is still unanswered: hand it back without calling the model."""
        history = machine.record.history
        if history and history[-1].role == ROLE_ASSISTANT and not history[-1].has_tool_calls:
            return TurnOutcome(session_id=machine.session_id, kind=TurnOutcome.QUESTION,
                               question=parse_response(history[-1].content))
        return None

"""Readiness evaluation: a JSON-only model query deciding whether to stop asking questions."""

import json
import logging
import re
from typing import List, Optional

from .executor import ModelClient
from .models import Message, ReadinessEvaluation, WorkflowKind, user_message
from .prompts import format_transcript, readiness_system_prompt

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")

# Older prompts asked for readyForADR / readyForPRD.
_READY_KEYS = ("ready", "readyForADR", "readyForPRD")


def strip_code_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned)
        cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def fallback_evaluation() -> ReadinessEvaluation:
    return ReadinessEvaluation(
        ready=False,
        missing_information=["Unable to evaluate readiness"],
        reasoning="Failed to parse evaluation response",
    )


def parse_evaluation(text: str) -> ReadinessEvaluation:
    """Decode the model's JSON verdict; anything malformed yields the not-ready fallback."""
    try:
        data = json.loads(strip_code_fences(text))
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse readiness response: {e}; response: {(text or '')[:500]}")
        return fallback_evaluation()

    if not isinstance(data, dict):
        logger.warning("Readiness response is not a JSON object")
        return fallback_evaluation()

    ready: Optional[bool] = None
    for key in _READY_KEYS:
        if isinstance(data.get(key), bool):
            ready = data[key]
            break
    if ready is None:
        logger.warning(f"Readiness response has no boolean verdict: {list(data.keys())}")
        return fallback_evaluation()

    missing = data.get("missingInformation") or []
    if not isinstance(missing, list):
        missing = [str(missing)]
    reasoning = data.get("reasoning")
    return ReadinessEvaluation(
        ready=ready,
        missing_information=[str(m) for m in missing],
        reasoning=reasoning if isinstance(reasoning, str) else "",
    )


class ReadinessEvaluator:

    def __init__(self, model_client: ModelClient, workflow: WorkflowKind = WorkflowKind.ADR,
                 temperature: Optional[float] = 0.0):
        self.model_client = model_client
        self.workflow = workflow
        self.temperature = temperature

    async def evaluate(self, history: List[Message]) -> ReadinessEvaluation:
        """Ask the model whether the conversation so far is enough to write the document."""
        transcript = format_transcript(history)
        reply = await self.model_client.invoke(
            [user_message(f"Conversation so far:\n\n{transcript}\n\nRespond with the JSON verdict only.")],
            [],
            system_prompt=readiness_system_prompt(self.workflow),
            temperature=self.temperature,
        )
        evaluation = parse_evaluation(reply.content)
        logger.info(
            f"Readiness: ready={evaluation.ready}, missing={len(evaluation.missing_information)} item(s)"
        )
        return evaluation

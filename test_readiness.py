"""Tests for readiness evaluation parsing and the evaluator call."""

import pytest

from conftest import FakeModelClient, ready_json
from planner.models import WorkflowKind, user_message
from planner.prompts import seed_message
from planner.readiness import ReadinessEvaluator, parse_evaluation, strip_code_fences


def test_plain_json_verdict():
    ev = parse_evaluation('{"ready": true, "missingInformation": [], "reasoning": "complete"}')
    assert ev.ready is True
    assert ev.missing_information == []
    assert ev.reasoning == "complete"


def test_code_fences_are_stripped():
    text = '```json\n{"ready": false, "missingInformation": ["error handling"], "reasoning": "gaps"}\n```'
    ev = parse_evaluation(text)
    assert ev.ready is False
    assert ev.missing_information == ["error handling"]
    assert strip_code_fences("```\n{}\n```") == "{}"


def test_legacy_ready_key_is_accepted():
    ev = parse_evaluation('{"readyForADR": true, "missingInformation": [], "reasoning": "ok"}')
    assert ev.ready is True


@pytest.mark.parametrize("text", [
    "Sure! Here is my evaluation: ready",
    "[true]",
    '{"ready": "yes", "reasoning": "string instead of bool"}',
    '{"missingInformation": []}',
    "",
])
def test_malformed_verdict_falls_back_to_not_ready(text):
    ev = parse_evaluation(text)
    assert ev.ready is False
    assert ev.missing_information == ["Unable to evaluate readiness"]
    assert ev.reasoning == "Failed to parse evaluation response"


@pytest.mark.asyncio
async def test_evaluator_sends_transcript_without_tools():
    model = FakeModelClient(readiness=[ready_json(True)])
    evaluator = ReadinessEvaluator(model, WorkflowKind.ADR, temperature=0.0)
    history = [
        user_message(seed_message("add dark mode toggle", "HUGE PACKED CODEBASE")),
        user_message("Store it in local storage"),
    ]

    ev = await evaluator.evaluate(history)

    assert ev.ready is True
    call = model.readiness_calls[0]
    assert call["tools"] == []
    assert call["temperature"] == 0.0
    assert "valid JSON" in call["system_prompt"]
    prompt = call["history"][0].content
    assert "Feature Request: add dark mode toggle" in prompt
    assert "Store it in local storage" in prompt
    assert "HUGE PACKED CODEBASE" not in prompt


@pytest.mark.asyncio
async def test_prd_workflow_uses_prd_criteria():
    model = FakeModelClient()
    await ReadinessEvaluator(model, WorkflowKind.PRD).evaluate([user_message("x")])
    assert "User Personas" in model.readiness_calls[0]["system_prompt"]

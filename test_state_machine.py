"""Tests for the session lifecycle state machine and snapshot caching."""

import pytest

from conftest import PACKED_CODEBASE, assistant
from planner.errors import PhaseError, SessionNotFound
from planner.models import (
    DecisionDocument, SessionPhase, SessionRecord, WorkflowKind, determine_phase, user_message,
)
from planner.state_machine import SessionStateMachine


def _new(store, snapshot):
    return SessionStateMachine.create("s1", "add dark mode toggle", WorkflowKind.ADR, store, snapshot)


@pytest.mark.asyncio
async def test_forward_walk_runs_each_side_effect_once(store, snapshot):
    machine = _new(store, snapshot)

    phase = await machine.transition_to(SessionPhase.CHAT_INITIALIZED)

    assert phase == SessionPhase.CHAT_INITIALIZED
    assert snapshot.pack_calls == 1
    record = machine.record
    assert record.codebase_content == PACKED_CODEBASE
    assert record.codebase_hash and len(record.codebase_hash) == 16
    assert record.pack_summary["file_count"] == 2
    assert len(record.history) == 1
    assert record.history[0].content.startswith("Feature Request: add dark mode toggle\n\nCodebase Context:\n")
    assert PACKED_CODEBASE in record.history[0].content
    assert store.load("s1").phase == SessionPhase.CHAT_INITIALIZED


@pytest.mark.asyncio
async def test_packing_twice_with_unchanged_tree_packs_once(store, snapshot):
    machine = _new(store, snapshot)
    await machine.transition_to(SessionPhase.CODEBASE_PACKED)
    await machine.transition_to(SessionPhase.CODEBASE_PACKED)
    assert snapshot.pack_calls == 1

    assert await machine.ensure_codebase() is False
    assert snapshot.pack_calls == 1


@pytest.mark.asyncio
async def test_changed_tree_triggers_repack(store, snapshot):
    machine = _new(store, snapshot)
    await machine.transition_to(SessionPhase.CODEBASE_PACKED)
    old_hash = machine.record.codebase_hash

    snapshot.fingerprint = "tree-v2"
    snapshot.content = PACKED_CODEBASE + '<file path="src/dark.css">\n</file>\n'

    assert await machine.ensure_codebase() is True
    assert snapshot.pack_calls == 2
    assert machine.record.codebase_hash != old_hash
    assert store.load("s1").pack_summary["file_count"] == 3


@pytest.mark.asyncio
async def test_backward_transition_is_ignored(store, snapshot):
    machine = _new(store, snapshot)
    await machine.transition_to(SessionPhase.PLANNING)

    assert await machine.transition_to(SessionPhase.CODEBASE_PACKED) == SessionPhase.PLANNING
    assert machine.phase == SessionPhase.PLANNING
    assert snapshot.pack_calls == 1


@pytest.mark.asyncio
async def test_resumed_history_is_restored_verbatim(store, snapshot):
    record = SessionRecord(feature_request="add dark mode toggle", phase=SessionPhase.CODEBASE_PACKED,
                           codebase_content=PACKED_CODEBASE, codebase_hash="x",
                           history=[user_message("earlier seed"), assistant("# Q")])
    machine = SessionStateMachine("s1", record, store, snapshot)

    await machine.transition_to(SessionPhase.CHAT_INITIALIZED)

    assert [m.content for m in machine.record.history] == ["earlier seed", "# Q"]


@pytest.mark.asyncio
async def test_completion_requires_document_and_freezes_history(store, snapshot):
    machine = _new(store, snapshot)
    await machine.transition_to(SessionPhase.PLANNING)

    with pytest.raises(PhaseError):
        await machine.transition_to(SessionPhase.COMPLETED)
    assert machine.phase == SessionPhase.PLANNING

    await machine.complete(DecisionDocument(kind="adr", title="Dark Mode", content="# ADR: 1 - Dark Mode"))
    assert machine.is_completed
    assert store.load("s1").document.title == "Dark Mode"

    with pytest.raises(PhaseError):
        machine.append(user_message("one more thing"))
    with pytest.raises(PhaseError):
        machine.receive_reply("one more thing")


def test_load_missing_session(store, snapshot):
    with pytest.raises(SessionNotFound):
        SessionStateMachine.load("nope", store, snapshot)


def test_determine_phase():
    assert determine_phase(SessionRecord()) == SessionPhase.FRESH
    assert determine_phase(SessionRecord(codebase_content="x")) == SessionPhase.CODEBASE_PACKED
    assert determine_phase(SessionRecord(codebase_content="x", history=[user_message("hi")])) == SessionPhase.PLANNING
    done = SessionRecord(history=[user_message("hi")], document=DecisionDocument(kind="adr", title="t", content="c"))
    assert determine_phase(done) == SessionPhase.COMPLETED


@pytest.mark.asyncio
async def test_state_info(store, snapshot):
    machine = _new(store, snapshot)
    await machine.transition_to(SessionPhase.CHAT_INITIALIZED)

    info = machine.state_info()
    assert info["state"] == "chat_initialized"
    assert info["has_codebase"] is True
    assert info["has_chat_history"] is True
    assert info["is_completed"] is False
    assert info["session_id"] == "s1"

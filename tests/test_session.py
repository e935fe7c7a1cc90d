"""
Tests for GenerationSession.
"""

import asyncio

import httpx
import pytest

from ai_builder.annotations import Annotation, AnnotationItem
from ai_builder.exceptions import PreconditionError
from ai_builder.history import HistoryRecorder
from ai_builder.models import GenerationRequest, GenerationState
from ai_builder.orchestrator import GenerationOrchestrator
from ai_builder.session import GenerationSession
from backend_fakes import agent_path, completion_data, envelope

WRITER_PATH = agent_path("writer")


@pytest.fixture
def session(client, recorder):
    return GenerationSession(GenerationOrchestrator(client, history=recorder), session_id="s1")


def request_for(prompt="Draft a landing page", **kwargs):
    return GenerationRequest(agent_id="writer", user_prompt=prompt, **kwargs)


def annotation(*labels, schema_id="hero"):
    return Annotation(
        schema_id=schema_id,
        schema_label="Hero Section",
        items=[AnnotationItem(id=str(i), label=label) for i, label in enumerate(labels)],
    )


class TestStart:
    """Test GenerationSession.start()."""

    @pytest.mark.asyncio
    async def test_publishes_result(self, backend, session, recorder):
        backend.reply(WRITER_PATH, envelope(completion_data("<h1>Hi</h1>")))

        outcome = await session.start(request_for())
        await session.flush()

        assert outcome is session.outcome
        assert outcome.state == GenerationState.DONE
        assert session.previous_response == "<h1>Hi</h1>"
        assert session.previous_prompt == "Draft a landing page"
        assert session.last_request.agent_id == "writer"
        assert session.last_prompt_id in recorder.records
        assert not session.busy
        assert session.usage.get_summary()["total_generations"] == 1

    @pytest.mark.asyncio
    async def test_failed_main_keeps_previous_response(self, backend, session):
        backend.reply(WRITER_PATH, envelope(completion_data("First")))
        await session.start(request_for())
        backend.reply(WRITER_PATH, {"error": "boom"}, status=500)

        outcome = await session.start(request_for("Second prompt"))

        assert outcome.main_error is not None
        assert session.previous_response == "First"
        assert session.previous_prompt == "Draft a landing page"

    @pytest.mark.asyncio
    async def test_empty_prompt(self, backend, session):
        with pytest.raises(PreconditionError):
            await session.start(request_for(""))

        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_new_generation_supersedes_in_flight(self, backend, session):
        gate = asyncio.Event()

        async def handler(request, body):
            if body["userPrompt"] == "first":
                await gate.wait()
            return httpx.Response(200, json=envelope(completion_data(f"answer to {body['userPrompt']}")))

        backend.handle(WRITER_PATH, handler)

        first = asyncio.create_task(session.start(request_for("first")))
        await asyncio.sleep(0.05)
        assert session.busy

        second = await session.start(request_for("second"))
        first_outcome = await first

        assert first_outcome.state == GenerationState.CANCELLED
        assert first_outcome.main_text is None
        assert second.main_text == "answer to second"
        assert session.outcome is second
        assert session.previous_response == "answer to second"

    @pytest.mark.asyncio
    async def test_annotations_cleared_by_new_response(self, backend, session):
        backend.reply(WRITER_PATH, envelope(completion_data("Page")))
        await session.start(request_for())
        session.annotations.set(annotation("Bigger title"))

        await session.start(request_for("Another page"))

        assert len(session.annotations) == 0


class TestStop:
    """Test GenerationSession.stop()."""

    @pytest.mark.asyncio
    async def test_stop_cancels_and_clears(self, backend, session, recorder):
        gate = asyncio.Event()
        backend.reply(WRITER_PATH, envelope(completion_data("Never shown")), gate=gate)

        task = asyncio.create_task(session.start(request_for()))
        await asyncio.sleep(0.05)

        assert session.stop() is True
        outcome = await task

        assert outcome.state == GenerationState.CANCELLED
        assert session.outcome.cancelled
        assert session.outcome.main_text is None
        assert session.previous_response is None
        assert not session.busy
        assert recorder.records == {}

    def test_stop_when_idle(self, session):
        assert session.stop() is False


class TestRegenerate:
    """Test annotation-driven regeneration."""

    @pytest.mark.asyncio
    async def test_nothing_to_regenerate(self, backend, session):
        with pytest.raises(PreconditionError):
            await session.regenerate([annotation("Bigger title")], agent_id="writer")

        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_no_changes_requested(self, backend, session):
        backend.reply(WRITER_PATH, envelope(completion_data("Page")))
        await session.start(request_for())

        with pytest.raises(PreconditionError, match="no changes"):
            await session.regenerate()

        assert len(backend.calls_to(WRITER_PATH)) == 1

    @pytest.mark.asyncio
    async def test_regenerate_applies_annotations(self, backend, session):
        backend.reply(WRITER_PATH, envelope(completion_data('{"title": "Old"}')))
        await session.start(request_for(body={"temperature": 0.5}))
        backend.reply(WRITER_PATH, envelope(completion_data('{"title": "New"}')))

        outcome = await session.regenerate([annotation("Rename the title")])

        call = backend.calls_to(WRITER_PATH)[1]
        assert call["userPrompt"].startswith("Draft a landing page\n\n---\n\n## MODIFY EXISTING SCHEMA(S)")
        assert "- Rename the title" in call["userPrompt"]
        assert '```json\n{"title": "Old"}\n```' in call["userPrompt"]
        assert call["previousAiResponse"] == '{"title": "Old"}'
        assert call["previousUserPrompt"] == "Draft a landing page"
        assert call["annotations"][0]["schemaId"] == "hero"
        assert call["body"] == {"temperature": 0.5}

        assert outcome.main_text == '{"title": "New"}'
        assert session.previous_response == '{"title": "New"}'
        assert session.previous_prompt == "Draft a landing page"
        assert session.annotations.item_count == 1

    @pytest.mark.asyncio
    async def test_aclose_cancels_in_flight(self, backend, session):
        gate = asyncio.Event()
        backend.reply(WRITER_PATH, envelope(completion_data("Never")), gate=gate)

        task = asyncio.create_task(session.start(request_for()))
        await asyncio.sleep(0.05)
        await session.aclose()
        outcome = await task

        assert outcome.cancelled

    @pytest.mark.asyncio
    async def test_reports_applying_annotations_while_in_flight(self, backend, session):
        backend.reply(WRITER_PATH, envelope(completion_data("Page")))
        await session.start(request_for())
        gate = asyncio.Event()
        backend.reply(WRITER_PATH, envelope(completion_data("Better page")), gate=gate)

        task = asyncio.create_task(session.regenerate([annotation("Bigger title")]))
        await asyncio.sleep(0.05)
        assert session.is_applying_annotations

        gate.set()
        await task
        assert not session.is_applying_annotations


class GatedRecorder(HistoryRecorder):
    """Holds the first write until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.writes = 0

    async def write(self, record):
        self.writes += 1
        record_id = f"id-{self.writes}"
        if self.writes == 1:
            await self.release.wait()
        return record_id


class TestHistoryId:
    """Test which generation owns last_prompt_id."""

    @pytest.mark.asyncio
    async def test_late_write_from_older_generation_is_ignored(self, backend, client):
        recorder = GatedRecorder()
        session = GenerationSession(GenerationOrchestrator(client, history=recorder), session_id="s1")
        backend.reply(WRITER_PATH, envelope(completion_data("Answer")))

        await session.start(request_for("first"))
        await session.start(request_for("second"))
        await session.flush()
        assert session.last_prompt_id == "id-2"

        recorder.release.set()
        await asyncio.sleep(0.05)

        assert recorder.writes == 2
        assert session.last_prompt_id == "id-2"

"""
Generation API routes.

Handles prompt composition, generation, regeneration and cancellation for
one session.
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from ..exceptions import PreconditionError
from ..prompt.composer import compose
from ..prompt.fields import extract_parameters
from ..session import GenerationSession
from .registry import SessionLimitError, SessionRegistry, get_registry
from .schemas import (
    AnnotationsUpdate,
    ComposeRequest,
    ComposeResponse,
    GenerateRequest,
    MessageResponse,
    OutcomeResponse,
    RegenerateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> GenerationSession:
    """Get or create the session named in the path."""
    try:
        return await registry.get_or_create(session_id)
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))


def _outcome_response(session: GenerationSession) -> OutcomeResponse:
    return OutcomeResponse(
        session_id=session.session_id,
        busy=session.busy,
        applying_annotations=session.is_applying_annotations,
        last_prompt_id=session.last_prompt_id,
        annotations=session.annotations.to_list(),
        outcome=session.outcome.to_dict(),
    )


@router.post("/{session_id}/compose", response_model=ComposeResponse)
async def compose_prompt(session_id: str, request: ComposeRequest):
    """
    Compose a prompt from form fields and values.

    Also returns the body/extra_body parameters routed out of the form.
    """
    fields = request.field_specs()
    params = extract_parameters(fields, request.values)
    prompt = compose(fields, request.values, selected_language=request.language)
    return ComposeResponse(prompt=prompt, body=params.body, extra_body=params.extra)


@router.post("/{session_id}/generate", response_model=OutcomeResponse)
async def generate(
    request: GenerateRequest,
    session: GenerationSession = Depends(get_session),
):
    """
    Run a generation and wait for its outcome.

    A generation already running in the session is cancelled first. If this
    generation is itself superseded, its cancelled outcome is returned.
    """
    try:
        outcome = await session.start(request.to_request())
    except PreconditionError as e:
        raise HTTPException(status_code=400, detail=e.message)

    response = _outcome_response(session)
    if session.outcome is not outcome:
        response.outcome = outcome.to_dict()
    return response


@router.post("/{session_id}/regenerate", response_model=OutcomeResponse)
async def regenerate(
    request: RegenerateRequest,
    session: GenerationSession = Depends(get_session),
):
    """Regenerate the previous response with annotations applied."""
    annotations = None
    if request.annotations is not None:
        annotations = [a.to_annotation() for a in request.annotations]

    try:
        outcome = await session.regenerate(annotations=annotations, agent_id=request.agent_id)
    except PreconditionError as e:
        raise HTTPException(status_code=400, detail=e.message)

    response = _outcome_response(session)
    if session.outcome is not outcome:
        response.outcome = outcome.to_dict()
    return response


@router.put("/{session_id}/annotations", response_model=OutcomeResponse)
async def update_annotations(
    update: AnnotationsUpdate,
    session: GenerationSession = Depends(get_session),
):
    """Replace the session's annotations."""
    session.annotations.replace_all(a.to_annotation() for a in update.annotations)
    return _outcome_response(session)


@router.post("/{session_id}/stop", response_model=MessageResponse)
async def stop_generation(session: GenerationSession = Depends(get_session)):
    """Cancel the generation in flight."""
    if session.stop():
        return MessageResponse(success=True, message="Generation stopped")
    return MessageResponse(success=False, message="No generation in progress")


@router.get("/{session_id}", response_model=OutcomeResponse)
async def get_state(session: GenerationSession = Depends(get_session)):
    """Current visible outcome of the session."""
    return _outcome_response(session)


@router.delete("/{session_id}", response_model=MessageResponse)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Cancel everything in the session and forget it."""
    removed = await registry.remove(session_id)
    if removed is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return MessageResponse(success=True, message="Session removed")

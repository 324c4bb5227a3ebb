from typing import AsyncGenerator
from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from ..schemas import StartSessionRequest, DraftRequest, SubmitRequest
from ..services.session import (
    UnsupportedAttachmentError,
    start_session as svc_start_session,
    list_sessions as svc_list_sessions,
    get_session as svc_get_session,
    drop_session as svc_drop_session,
)
from ..utils import STREAM_HEADERS

router = APIRouter()


def _session_or_404(session_id: str):
    try:
        return svc_get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")


@router.post("/session/start")
async def start_session(payload: StartSessionRequest):
    session = svc_start_session(draft=payload.draft)
    return {"session_id": session.session_id}


@router.get("/session/list")
async def list_sessions():
    return {"sessions": svc_list_sessions()}


@router.get("/session/{session_id}")
async def get_session(session_id: str):
    return _session_or_404(session_id).snapshot()


@router.delete("/session/{session_id}")
async def drop_session(session_id: str):
    try:
        svc_drop_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
    return {"ok": True}


@router.get("/session/{session_id}/history")
async def get_history(session_id: str):
    session = _session_or_404(session_id)
    return {"session_id": session_id, "messages": [t.model_dump() for t in session.transcript]}


@router.post("/session/{session_id}/draft")
async def set_draft(session_id: str, payload: DraftRequest):
    session = _session_or_404(session_id)
    session.set_draft(payload.text)
    return {"ok": True}


@router.post("/session/{session_id}/attachment")
async def attach_image(session_id: str, file: UploadFile = File(...)):
    session = _session_or_404(session_id)
    raw = await file.read()
    try:
        attachment = session.attach_image(file.content_type, raw, filename=file.filename)
    except UnsupportedAttachmentError as exc:
        raise HTTPException(status_code=415, detail=str(exc))
    return {"ok": True, "media_type": attachment.media_type, "filename": file.filename}


@router.delete("/session/{session_id}/attachment")
async def remove_attachment(session_id: str):
    session = _session_or_404(session_id)
    session.remove_attachment()
    return {"ok": True}


@router.post("/session/{session_id}/submit")
async def submit(session_id: str, payload: SubmitRequest):
    session = _session_or_404(session_id)
    if session.busy:
        raise HTTPException(status_code=409, detail="a generation is already running for this session")

    turn = session.begin_turn(payload.prompt)
    if turn is None:
        raise HTTPException(status_code=400, detail="nothing to submit: provide a prompt or attach an image")

    # The turn runs on its own task; a client that goes away only stops this reader
    fragments = session.start_background_turn(turn)

    async def _event_stream() -> AsyncGenerator[bytes, None]:
        while True:
            fragment = await fragments.get()
            if fragment is None:
                break
            yield fragment.encode("utf-8", errors="ignore")

    return StreamingResponse(
        _event_stream(),
        media_type="text/html; charset=utf-8",
        headers=STREAM_HEADERS,
    )

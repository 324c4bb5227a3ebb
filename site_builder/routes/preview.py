from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse

from ..services.session import get_session as svc_get_session

router = APIRouter()

# Generated pages run scripts but get an opaque origin, like an <iframe sandbox="allow-scripts">
PREVIEW_HEADERS = {
    "Content-Security-Policy": "sandbox allow-scripts",
    "Cache-Control": "no-store",
}


@router.get("/session/{session_id}/preview")
async def preview(session_id: str):
    try:
        session = svc_get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
    return HTMLResponse(session.document, headers=PREVIEW_HEADERS)


@router.get("/session/{session_id}/code")
async def code(session_id: str):
    try:
        session = svc_get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
    return PlainTextResponse(session.document, headers={"Cache-Control": "no-store"})

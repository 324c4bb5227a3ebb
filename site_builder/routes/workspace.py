import html
import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from ..schemas import ViewMode, Viewport
from ..services.session import (
    SiteSession,
    UnsupportedAttachmentError,
    get_session as svc_get_session,
    start_session as svc_start_session,
)
from .health import get_suggestions

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_or_404(session_id: str) -> SiteSession:
    try:
        return svc_get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")


def _workspace_url(
    session_id: str,
    mode: ViewMode = ViewMode.PREVIEW,
    viewport: Viewport = Viewport.DESKTOP,
    notice: Optional[str] = None,
) -> str:
    url = f"/session/{session_id}?mode={mode.value}&viewport={viewport.value}"
    if notice:
        url += f"&notice={quote(notice)}"
    return url


def _composer(session: SiteSession, placeholder: str) -> str:
    sid = html.escape(session.session_id)
    attachment = ""
    if session.attachment is not None:
        attachment = (
            f'<div class="attachment"><img alt="Preview" src="{html.escape(session.attachment.data_url())}">'
            f'<button formaction="/session/{sid}/attachment/remove" formmethod="post" type="submit">&times;</button></div>'
        )
    return f"""
<form method="post" action="/session/{sid}/compose" enctype="multipart/form-data" class="composer">
  {attachment}
  <textarea name="prompt" placeholder="{html.escape(placeholder)}"
    onkeydown="if(event.key==='Enter'&&!event.shiftKey){{event.preventDefault();this.form.submit();}}">{html.escape(session.draft)}</textarea>
  <input type="file" name="image" accept="image/png, image/jpeg">
  <button type="submit"{' disabled' if session.busy else ''}>Send</button>
</form>"""


def render_hero(session: SiteSession, suggestions: List[str]) -> str:
    buttons = "".join(
        f'<button type="submit" name="prompt" value="{html.escape(s)}">{html.escape(s)}</button>'
        for s in suggestions
    )
    sid = html.escape(session.session_id)
    return f"""
<main class="hero">
  <h1>Build something extraordinary</h1>
  <p>Describe a website, optionally attach a reference image, and refine it by chatting.</p>
  {_composer(session, "Describe the site you want...")}
  <form method="post" action="/session/{sid}/compose" enctype="multipart/form-data" class="suggestions">{buttons}</form>
</main>"""


def render_session(session: SiteSession, mode: ViewMode, viewport: Viewport) -> str:
    sid = session.session_id
    messages = "".join(
        f'<div class="msg {turn.role}">{html.escape(turn.text)}</div>' for turn in session.transcript
    )
    status = "Generating..." if session.busy else "Live Preview"
    viewport_links = " ".join(
        f'<a class="{"active" if v is viewport else ""}" href="{_workspace_url(sid, mode, v)}">{v.value.title()}</a>'
        for v in Viewport
    )
    other_mode = ViewMode.PREVIEW if mode is ViewMode.CODE else ViewMode.CODE
    toggle = f'<a href="{_workspace_url(sid, other_mode, viewport)}">{"Preview" if mode is ViewMode.CODE else "Code"}</a>'

    if mode is ViewMode.CODE:
        canvas = f'<pre class="code">{html.escape(session.document)}</pre>'
    elif session.document:
        height = "100%" if viewport is Viewport.DESKTOP else "850px"
        canvas = (
            f'<iframe title="Preview" sandbox="allow-scripts" src="/api/session/{html.escape(sid)}/preview" '
            f'style="width:{viewport.width};height:{height};max-height:100%"></iframe>'
        )
    else:
        canvas = '<div class="waiting">Waiting for magic...</div>'

    return f"""
<div class="split">
  <aside>
    <div class="chat">{messages}</div>
    {_composer(session, "Request a change...")}
  </aside>
  <section>
    <nav>{viewport_links} <span class="status">{status}</span> {toggle}</nav>
    <div class="canvas">{canvas}</div>
  </section>
</div>"""


def render_workspace(
    session: SiteSession,
    mode: ViewMode,
    viewport: Viewport,
    suggestions: List[str],
    notice: Optional[str] = None,
) -> str:
    body = render_session(session, mode, viewport) if session.has_started else render_hero(session, suggestions)
    if notice:
        body = f'<div class="notice" role="alert">{html.escape(notice)}</div>' + body
    # Poll while a turn is streaming so the preview rebuilds live
    refresh = '<meta http-equiv="refresh" content="1">' if session.busy else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{refresh}
<title>Site Builder</title>
<style>
  body {{ margin: 0; font-family: system-ui, sans-serif; background: #F5F5F7; color: #1D1D1F; }}
  .hero {{ max-width: 48rem; margin: 10vh auto; text-align: center; }}
  .split {{ display: flex; height: 100vh; }}
  aside {{ width: 400px; display: flex; flex-direction: column; background: #fff; border-right: 1px solid #ddd; }}
  .chat {{ flex: 1; overflow-y: auto; padding: 1rem; }}
  .msg {{ margin: .5rem 0; padding: .75rem 1rem; border-radius: 1rem; white-space: pre-wrap; }}
  .msg.user {{ background: #E8E8ED; margin-left: 10%; }}
  .msg.assistant {{ border: 1px solid #eee; color: #555; margin-right: 10%; }}
  .composer textarea {{ width: 100%; min-height: 50px; box-sizing: border-box; }}
  .attachment img {{ height: 48px; width: 48px; object-fit: cover; border-radius: 6px; }}
  section {{ flex: 1; display: flex; flex-direction: column; }}
  nav {{ display: flex; gap: 1rem; align-items: center; padding: 1rem; }}
  nav a.active {{ font-weight: 700; }}
  .canvas {{ flex: 1; display: flex; align-items: center; justify-content: center; padding: 1.5rem; overflow: hidden; }}
  .canvas iframe {{ border: 1px solid rgba(0,0,0,.1); background: #fff; border-radius: 12px; }}
  .notice {{ background: #FEF2F2; color: #991B1B; padding: .75rem 1rem; text-align: center; }}
  .code {{ width: 100%; height: 100%; overflow: auto; background: #1e1e1e; color: #dbeafe; padding: 1rem; white-space: pre-wrap; }}
</style>
</head>
<body>
{body}
</body>
</html>"""


@router.get("/", response_class=HTMLResponse)
async def index():
    session = svc_start_session()
    return RedirectResponse(_workspace_url(session.session_id), status_code=303)


@router.get("/session/{session_id}", response_class=HTMLResponse)
async def workspace(
    session_id: str,
    mode: ViewMode = ViewMode.PREVIEW,
    viewport: Viewport = Viewport.DESKTOP,
    notice: Optional[str] = None,
):
    session = _session_or_404(session_id)
    return HTMLResponse(render_workspace(session, mode, viewport, get_suggestions(), notice))


@router.post("/session/{session_id}/compose")
async def compose(session_id: str, prompt: str = Form(""), image: Optional[UploadFile] = File(None)):
    session = _session_or_404(session_id)
    if image is not None and image.filename:
        raw = await image.read()
        try:
            session.attach_image(image.content_type, raw, filename=image.filename)
        except UnsupportedAttachmentError as exc:
            session.set_draft(prompt)
            return RedirectResponse(_workspace_url(session_id, notice=str(exc)), status_code=303)

    turn = session.begin_turn(prompt)
    if turn is None:
        # Rejected while busy or empty: keep what was typed in the composer
        session.set_draft(prompt)
    else:
        session.start_background_turn(turn)
    return RedirectResponse(_workspace_url(session_id), status_code=303)


@router.post("/session/{session_id}/attachment/remove")
async def remove_attachment(session_id: str):
    session = _session_or_404(session_id)
    session.remove_attachment()
    return RedirectResponse(_workspace_url(session_id), status_code=303)

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Set, Tuple

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.messages import AIMessage, HumanMessage

from ..schemas import (
    SUPPORTED_IMAGE_TYPES,
    Attachment,
    AttachmentSummary,
    SessionSnapshot,
    Turn,
)
from ..utils import encode_base64
from . import generation

logger = logging.getLogger(__name__)

ASSISTANT_CONFIRMATION = "Site updated successfully."

# Keeps background turns referenced until they finish
_RUNNING: Set[asyncio.Task] = set()
IMAGE_MARKER = "[Image attached]"


class UnsupportedAttachmentError(ValueError):
    def __init__(self, media_type: Optional[str]):
        super().__init__("Please select a PNG or JPEG image.")
        self.media_type = media_type


@dataclass(frozen=True)
class PendingTurn:
    """Values captured when a submission is accepted."""

    prompt: str
    attachment: Optional[Attachment]
    base_document: str
    transcript: Tuple[Turn, ...]


class SiteSession:
    """
    State of one website-building conversation.

    Holds the HTML document under construction, the transcript, the pending
    image and the busy flag. All changes go through the update methods below.
    """

    def __init__(self, session_id: Optional[str] = None, draft: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.created_at = datetime.now(timezone.utc).isoformat()
        self._history = InMemoryChatMessageHistory()
        self._document = ""
        self._attachment: Optional[Attachment] = None
        self._attachment_filename: Optional[str] = None
        self._busy = False
        self._has_started = False
        self._draft = draft or ""

    @property
    def document(self) -> str:
        return self._document

    @property
    def attachment(self) -> Optional[Attachment]:
        return self._attachment

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def has_started(self) -> bool:
        return self._has_started

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def transcript(self) -> List[Turn]:
        return [
            Turn(role="user" if m.type == "human" else "assistant", text=str(m.content))
            for m in self._history.messages
        ]

    # ---------- update operations ----------

    def append_fragment(self, fragment: str) -> None:
        self._document += fragment

    def reset_document(self) -> None:
        self._document = ""

    def append_turn(self, role: str, text: str) -> None:
        if role == "user":
            self._history.add_message(HumanMessage(content=text))
        elif role == "assistant":
            self._history.add_message(AIMessage(content=text))
        else:
            raise ValueError(f"unknown role: {role}")

    def set_busy(self, busy: bool) -> None:
        self._busy = busy

    def set_attachment(self, attachment: Attachment, filename: Optional[str] = None) -> None:
        self._attachment = attachment
        self._attachment_filename = filename

    def clear_attachment(self) -> None:
        self._attachment = None
        self._attachment_filename = None

    def set_draft(self, text: str) -> None:
        self._draft = text

    # ---------- user actions ----------

    def attach_image(self, media_type: Optional[str], raw: bytes, filename: Optional[str] = None) -> Attachment:
        if media_type not in SUPPORTED_IMAGE_TYPES:
            logger.info("Rejected attachment %r with media type %r", filename, media_type)
            raise UnsupportedAttachmentError(media_type)
        attachment = Attachment(media_type=media_type, data=encode_base64(raw))
        self.set_attachment(attachment, filename)
        return attachment

    def remove_attachment(self) -> None:
        self.clear_attachment()

    def begin_turn(self, prompt: Optional[str] = None) -> Optional[PendingTurn]:
        """
        Accept a submission, or return None when it must be ignored.

        Ignored when a turn is already running, or when there is neither
        prompt text nor a pending image. The prompt defaults to the draft.
        """
        text = self._draft if prompt is None else prompt
        if self._busy:
            logger.debug("Session %s is busy; submission ignored", self.session_id)
            return None
        if not text.strip() and self._attachment is None:
            return None

        attachment = self._attachment
        turn = PendingTurn(
            prompt=text,
            attachment=attachment,
            base_document=self._document,
            transcript=tuple(self.transcript),
        )

        self.set_draft("")
        self.clear_attachment()
        self._has_started = True
        self.set_busy(True)
        self.append_turn("user", f"{IMAGE_MARKER} {text}" if attachment is not None else text)
        self.reset_document()
        logger.info("Session %s: turn started (image=%s)", self.session_id, attachment is not None)
        return turn

    async def run_turn(self, turn: PendingTurn) -> AsyncGenerator[str, None]:
        """Stream the generation for an accepted turn into the document, re-yielding each fragment."""
        try:
            async for fragment in generation.stream_website_html(
                prompt=turn.prompt,
                current_document=turn.base_document,
                attachment=turn.attachment,
                transcript=turn.transcript,
            ):
                self.append_fragment(fragment)
                yield fragment
            self.append_turn("assistant", ASSISTANT_CONFIRMATION)
            logger.info("Session %s: turn finished (%d chars)", self.session_id, len(self._document))
        finally:
            self.set_busy(False)

    async def submit(self, prompt: Optional[str] = None, on_chunk: Optional[Callable[[str], None]] = None) -> bool:
        turn = self.begin_turn(prompt)
        if turn is None:
            return False
        async for fragment in self.run_turn(turn):
            if on_chunk is not None:
                on_chunk(fragment)
        return True

    def start_background_turn(self, turn: PendingTurn) -> "asyncio.Queue[Optional[str]]":
        """
        Run an accepted turn as a task that does not depend on any reader.

        Fragments are also put on the returned queue, followed by None once the
        turn is over. Readers may stop at any time; the turn still completes.
        """
        queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

        async def _drain():
            try:
                async for fragment in self.run_turn(turn):
                    queue.put_nowait(fragment)
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(_drain())
        _RUNNING.add(task)
        task.add_done_callback(_RUNNING.discard)
        return queue

    def snapshot(self) -> SessionSnapshot:
        summary = None
        if self._attachment is not None:
            summary = AttachmentSummary(
                media_type=self._attachment.media_type,
                size=len(self._attachment.data),
                filename=self._attachment_filename,
            )
        return SessionSnapshot(
            session_id=self.session_id,
            created_at=self.created_at,
            document=self._document,
            transcript=self.transcript,
            busy=self._busy,
            has_started=self._has_started,
            draft=self._draft,
            attachment=summary,
        )


# In-memory only; every session is lost on restart.
SESSIONS: Dict[str, SiteSession] = {}


def start_session(*, draft: Optional[str] = None) -> SiteSession:
    session = SiteSession(draft=draft)
    SESSIONS[session.session_id] = session
    logger.info("Started session %s", session.session_id)
    return session


def get_session(session_id: str) -> SiteSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise KeyError("session not found")
    return session


def list_sessions() -> List[Dict[str, Any]]:
    return [
        {
            "session_id": sid,
            "created_at": session.created_at,
            "turns": len(session.transcript),
            "busy": session.busy,
            "has_started": session.has_started,
        }
        for sid, session in SESSIONS.items()
    ]


def drop_session(session_id: str) -> None:
    if SESSIONS.pop(session_id, None) is None:
        raise KeyError("session not found")

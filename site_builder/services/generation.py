import inspect
import logging
from typing import AsyncGenerator, Callable, List, Optional, Sequence

from openai import AsyncOpenAI

from ..config import load_settings, DEFAULT_SYSTEM_PROMPT
from ..schemas import Attachment, Turn
from ..utils import async_sleep_yield, html_comment

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Error: API Key is missing. Please check your environment configuration."

DEFAULT_CONTEXT = {
    "base_document": (
        "Here is the current state of the HTML code you are working on. "
        "Use this as a base for any updates requested:\n\n{document}\n\n"
    ),
    "history": "Conversation History:\n{history}\n\n",
    "current_request": "Current Request: {prompt}",
}

DEFAULT_SPEAKERS = {"user": "User", "assistant": "Assistant"}


def format_history(transcript: Sequence[Turn], speakers: Optional[dict] = None) -> str:
    names = {**DEFAULT_SPEAKERS, **(speakers or {})}
    return "\n".join(f"{names[turn.role]}: {turn.text}" for turn in transcript)


def build_content_parts(
    *,
    prompt: str,
    current_document: Optional[str],
    attachment: Optional[Attachment],
    transcript: Sequence[Turn],
    prompts: Optional[dict] = None,
) -> List[dict]:
    """
    Assemble the user message parts for one generation call.

    The order is fixed: base document, conversation history, current request,
    then the reference image (if any) after every text part.
    """
    prompts = prompts or {}
    context = {**DEFAULT_CONTEXT, **(prompts.get("context") or {})}

    parts: List[dict] = []
    if current_document:
        parts.append({"type": "text", "text": context["base_document"].format(document=current_document)})
    if transcript:
        history_text = format_history(transcript, prompts.get("speakers"))
        parts.append({"type": "text", "text": context["history"].format(history=history_text)})
    parts.append({"type": "text", "text": context["current_request"].format(prompt=prompt)})
    if attachment is not None:
        parts.append({"type": "image_url", "image_url": {"url": attachment.data_url()}})
    return parts


def build_messages(
    *,
    prompt: str,
    current_document: Optional[str],
    attachment: Optional[Attachment],
    transcript: Sequence[Turn],
    prompts: Optional[dict] = None,
) -> List[dict]:
    prompts = prompts or {}
    system_text = (prompts.get("system") or {}).get("website_generation") or DEFAULT_SYSTEM_PROMPT
    return [
        {"role": "system", "content": system_text},
        {
            "role": "user",
            "content": build_content_parts(
                prompt=prompt,
                current_document=current_document,
                attachment=attachment,
                transcript=transcript,
                prompts=prompts,
            ),
        },
    ]


def _chunk_text(chunk) -> str:
    try:
        return chunk.choices[0].delta.content or ""
    except (AttributeError, IndexError, TypeError):
        return ""


async def stream_website_html(
    *,
    prompt: str,
    current_document: Optional[str] = None,
    attachment: Optional[Attachment] = None,
    transcript: Sequence[Turn] = (),
) -> AsyncGenerator[str, None]:
    """
    Run one generation turn and yield the HTML fragments as they arrive.

    Never raises: a missing API key or any fault in the remote call is turned
    into an HTML comment fragment so partial output stays renderable.
    """
    settings = load_settings()
    if not settings.openai_api_key:
        logger.error("API key is missing; not calling the model")
        yield html_comment(MISSING_KEY_MESSAGE)
        return

    messages = build_messages(
        prompt=prompt,
        current_document=current_document,
        attachment=attachment,
        transcript=transcript,
        prompts=settings.prompts,
    )

    try:
        async_client = AsyncOpenAI(api_key=settings.openai_api_key)
        result = async_client.chat.completions.create(
            model=settings.openai_model,
            messages=messages,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            stream=True,
        )
        stream = await result if inspect.isawaitable(result) else result

        async for chunk in stream:  # type: ignore
            delta = _chunk_text(chunk)
            if delta:
                yield delta
                await async_sleep_yield()
    except Exception as exc:
        logger.exception("Error generating content")
        yield "\n" + html_comment(f"Error generating content: {exc}")


async def generate_website_stream(
    *,
    prompt: str,
    current_document: Optional[str],
    attachment: Optional[Attachment],
    transcript: Sequence[Turn],
    on_chunk: Callable[[str], None],
) -> None:
    async for fragment in stream_website_html(
        prompt=prompt,
        current_document=current_document,
        attachment=attachment,
        transcript=transcript,
    ):
        on_chunk(fragment)

import asyncio
import base64


STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


async def async_sleep_yield():
    # Help cooperative multitasking in streaming loops
    await asyncio.sleep(0)


def html_comment(text: str) -> str:
    """Wrap text in an HTML comment that cannot be closed early by its own content."""
    safe = str(text)
    while "--" in safe:
        safe = safe.replace("--", "- -")
    return f"<!-- {safe} -->"


def encode_base64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")

from typing import AsyncGenerator
from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ..schemas import GenerateRequest
from ..services.generation import stream_website_html
from ..utils import STREAM_HEADERS

router = APIRouter()


@router.post("/generate")
async def generate_website(data: GenerateRequest):
    async def _event_stream() -> AsyncGenerator[bytes, None]:
        async for fragment in stream_website_html(
            prompt=data.prompt,
            current_document=data.current_document,
            attachment=data.attachment,
            transcript=data.history,
        ):
            yield fragment.encode("utf-8", errors="ignore")

    return StreamingResponse(
        _event_stream(),
        media_type="text/html; charset=utf-8",
        headers=STREAM_HEADERS,
    )

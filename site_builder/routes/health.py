from fastapi import APIRouter

from ..config import load_settings

router = APIRouter()

DEFAULT_SUGGESTIONS = ["Minimalist portfolio", "SaaS landing page", "Personal blog"]


def get_suggestions():
    prompts = load_settings().prompts or {}
    suggestions = prompts.get("suggestions")
    if isinstance(suggestions, list) and suggestions:
        return [str(s) for s in suggestions]
    return list(DEFAULT_SUGGESTIONS)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/suggestions")
async def suggestions():
    return {"suggestions": get_suggestions()}

import os
from dataclasses import dataclass
from typing import List, Optional
import logging
import pathlib
import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    openai_model: str
    openai_max_tokens: int
    openai_temperature: float
    cors_allow_origins: List[str]
    prompts: dict


def load_settings() -> Settings:
    cors_env = os.getenv("CORS_ALLOW_ORIGINS", "*")
    cors = [o.strip() for o in cors_env.split(",") if o.strip()] or ["*"]
    model = os.getenv("OPENAI_MODEL", "gpt-4o")
    max_tokens_env = os.getenv("OPENAI_MAX_TOKENS")
    try:
        max_tokens = int(max_tokens_env) if max_tokens_env else DEFAULT_MAX_TOKENS
    except ValueError:
        max_tokens = DEFAULT_MAX_TOKENS
    temperature_env = os.getenv("OPENAI_TEMPERATURE")
    try:
        temperature = float(temperature_env) if temperature_env else DEFAULT_TEMPERATURE
    except ValueError:
        temperature = DEFAULT_TEMPERATURE
    prompts = _load_prompts()
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=model,
        openai_max_tokens=max_tokens,
        openai_temperature=temperature,
        cors_allow_origins=cors,
        prompts=prompts,
    )


def _load_prompts() -> dict:
    # prompts.yml ships inside the package, next to this module
    prompts_path = pathlib.Path(__file__).resolve().parent / "prompts.yml"
    try:
        with open(prompts_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                return {}
            return data
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not load prompts from %s: %s", prompts_path, exc)
        return {}


DEFAULT_MAX_TOKENS = 8192
DEFAULT_TEMPERATURE = 0.7

# Fallback system instruction when prompts.yml does not provide one
DEFAULT_SYSTEM_PROMPT = """
You are a world-class expert frontend engineer and UI/UX designer known for "Apple-style" aesthetics and clean code.

Your goal is to generate or update a SINGLE, COMPLETE HTML file based on the user's prompt and the conversation history.

Rules:
1. Return ONLY the raw HTML code. Do not wrap it in markdown blocks (no ```html) and do not add explanations.
2. Include internal CSS within <style> tags. Use Tailwind CSS via CDN: <script src="https://cdn.tailwindcss.com"></script>.
3. Include internal JavaScript within <script> tags if interactivity is needed.
4. Design Requirements:
   - Modern, minimalist, clean layout.
   - Use plenty of whitespace, rounded corners, and subtle shadows.
   - Ensure full responsiveness (mobile-first).
   - Use generic placeholder images from https://picsum.photos if needed.
5. If an image is provided by the user, analyze it and replicate its layout, color scheme, and vibe as closely as possible in the generated HTML.
6. ALWAYS return the FULL HTML file, not just snippets. The user needs to see the complete result.
""".strip()

from __future__ import annotations
import logging
import os
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    supabase_url: str = ""
    supabase_anon_key: str = ""
    ai_stream_url: str = "wss://backend.buildpicoapps.com/ask_ai_streaming_v2"
    ai_app_id: str = "early-ahead"
    chunk_size: int = 5
    max_days: int = 30
    request_timeout: float = 15
    plan_prompt: str = (
        "Generate a high-end, professional Ramadan meal plan specifically for Days {start} to {end}.\n\n"
        "CRITICAL FORMAT for EACH day ({start} to {end}):\n"
        "# Day [Number]\n\n"
        "## Suhoor\n"
        "- [Feature Item 1]\n"
        "- [Feature Item 2]\n\n"
        "## Iftar\n"
        "- [Feature Item 1]\n"
        "- [Feature Item 2]\n\n"
        "## Preparation\n"
        "- [Step 1]\n"
        "- [Step 2]\n\n"
        "## Shopping List\n"
        "- [Generic Item 1]\n"
        "- [Generic Item 2]\n\n"
        "Context: Family of {family_size}, Budget INR {daily_budget}/day, {cuisine} style.\n"
        "{extra_context}"
        "IMPORTANT: Use Markdown headings (##) for Suhoor, Iftar, Preparation, and Shopping List sections."
    )
    chat_system_prompt: str = (
        "You are Nur, a compassionate, wise, and knowledgeable Ramadan Spiritual & Culinary Assistant "
        "for the 'SehriMilan' app.\n"
        "Your goals:\n"
        "1. Provide culinary guidance: recipes, step-by-step cooking steps, and ingredient "
        "substitutions for Iftar and Suhoor.\n"
        "2. Offer spiritual support: tips for mindfulness, patience, and the spirit of Ramadan.\n"
        "3. Help with planning: Suggest meals based on budget, family size, or dietary needs.\n\n"
        "Style: Warm, professional, and encouraging. Use occasional emojis like 🌙, ✨, 🥗. "
        "Keep responses concise but helpful. Use Markdown for formatting."
    )

    @field_validator("supabase_url", mode="after")
    @classmethod
    def require_url(cls, v: str) -> str:
        env_val = os.environ.get("SUPABASE_URL", v)
        if not env_val:
            raise ValueError("SUPABASE_URL environment variable is required")
        return env_val.rstrip("/")

    @field_validator("supabase_anon_key", mode="after")
    @classmethod
    def require_anon_key(cls, v: str) -> str:
        env_val = os.environ.get("SUPABASE_ANON_KEY", v)
        if not env_val:
            raise ValueError("SUPABASE_ANON_KEY environment variable is required")
        if not env_val.startswith("eyJ"):
            # Anon keys are JWTs; anything else is usually a key from another provider.
            logger.warning(
                "SUPABASE_ANON_KEY does not look like a JWT (starts with %r)", env_val[:15]
            )
        return env_val

    @field_validator("chunk_size", "max_days", mode="after")
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

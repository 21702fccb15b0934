"""
Runtime settings read from the environment.

A ``.env`` file is honoured (searched upwards from the working directory).
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load .env file (walks up directories to find it)
load_dotenv(find_dotenv(usecwd=True))


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    llm_provider: str = Field(default="groq", description="groq, ollama or none")
    groq_api_key: str = Field(default="")
    groq_api_url: str = Field(default="https://api.groq.com/openai/v1/chat/completions")
    groq_model: str = Field(default="llama-3.1-8b-instant")
    ollama_base_url: str = Field(default="http://127.0.0.1:11434")
    ollama_model: str = Field(default="llama3")
    llm_timeout_seconds: float = Field(default=20.0, gt=0.0)
    llm_max_concurrency: int = Field(default=4, ge=1)
    max_upload_mb: int = Field(default=5, ge=1)
    log_level: str = Field(default="INFO")


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    return value if value not in (None, "") else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings built once from the process environment."""
    overrides = {
        "llm_provider": _env("LLM_PROVIDER"),
        "groq_api_key": _env("GROQ_API_KEY"),
        "groq_model": _env("GROQ_MODEL"),
        "ollama_base_url": _env("OLLAMA_BASE_URL"),
        "ollama_model": _env("OLLAMA_MODEL"),
        "llm_timeout_seconds": _env("LLM_TIMEOUT_SECONDS"),
        "llm_max_concurrency": _env("LLM_MAX_CONCURRENCY"),
        "max_upload_mb": _env("MAX_UPLOAD_MB"),
        "log_level": _env("GENORISK_LOG_LEVEL"),
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})

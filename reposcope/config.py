from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_SESSION_SECRET = "reposcope-fallback-secret"


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


class Settings(BaseModel):
    environment: str = "development"
    log_level: str = "INFO"

    llm_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    openai_api_key: str = ""
    openai_model: str = "gpt-4.1-mini"
    ollama_host: str = "http://127.0.0.1:11434"
    ollama_model: str = "qwen2.5:7b-instruct"

    github_token: str = ""
    github_api_url: str = "https://api.github.com"

    storage_backend: str = "database"
    database_url: str = "sqlite:///reposcope.db"
    session_secret: str = DEFAULT_SESSION_SECRET

    # "strict" drops model claims that point at files we never saw
    response_mode: str = "strict"
    analysis_max_attempts: int = 2

    @property
    def llm_configured(self) -> bool:
        if self.llm_provider == "gemini":
            return bool(self.gemini_api_key)
        if self.llm_provider == "openai":
            return bool(self.openai_api_key)
        return True


def load_settings() -> Settings:
    return Settings(
        environment=_env("ENVIRONMENT", "development"),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        llm_provider=_env("LLM_PROVIDER", "gemini").lower(),
        gemini_api_key=_env("GEMINI_API_KEY"),
        gemini_model=_env("GEMINI_MODEL", "gemini-2.5-flash"),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL", "gpt-4.1-mini"),
        ollama_host=_env("OLLAMA_HOST", "http://127.0.0.1:11434"),
        ollama_model=_env("OLLAMA_MODEL", "qwen2.5:7b-instruct"),
        github_token=_env("GITHUB_TOKEN"),
        github_api_url=_env("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
        storage_backend=_env("STORAGE_BACKEND", "database").lower(),
        database_url=_env("DATABASE_URL", "sqlite:///reposcope.db"),
        session_secret=_env("SESSION_SECRET", DEFAULT_SESSION_SECRET),
        response_mode=_env("RESPONSE_MODE", "strict").lower(),
        analysis_max_attempts=max(1, int(_env("ANALYSIS_MAX_ATTEMPTS", "2") or "2")),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()

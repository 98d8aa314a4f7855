from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from reposcope.auth import AuthPayload, authenticate, authenticate_optional
from reposcope.config import Settings, get_settings
from reposcope.github import GitHubClient
from reposcope.llm import LLMProvider, get_provider
from reposcope.storage import Storage, create_storage


@lru_cache
def _storage(backend: str, database_url: str) -> Storage:
    return create_storage(backend, database_url)


def get_storage(settings: Settings = Depends(get_settings)) -> Storage:
    return _storage(settings.storage_backend, settings.database_url)


def get_github(settings: Settings = Depends(get_settings)) -> GitHubClient:
    return GitHubClient(token=settings.github_token, base_url=settings.github_api_url)


def get_llm(settings: Settings = Depends(get_settings)) -> LLMProvider:
    # A missing API key surfaces as LLMConfigError on the first generate().
    return get_provider(settings)


def require_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
) -> AuthPayload:
    return authenticate(request, settings.session_secret, storage)


def optional_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[AuthPayload]:
    return authenticate_optional(request, settings.session_secret)

"""
Repository analysis pipeline, reported step by step.

`run_analysis` is a generator of progress events; the HTTP layer frames each
one as a Server-Sent Event. The sequence is always a run of progress steps
ending in exactly one `complete` or `error` event.
"""
from __future__ import annotations

import json
import logging
from typing import Iterator, Optional

from reposcope.analyzer import analyze_repository
from reposcope.github import GitHubClient
from reposcope.llm import LLMProvider
from reposcope.schemas import AnalysisResult, RepoRef
from reposcope.storage import Storage
from reposcope.utils import MAX_KEY_FILES

logger = logging.getLogger(__name__)

INCOMPLETE_RESPONSE_MESSAGE = (
    "The AI returned an incomplete response. This can happen with very large "
    "repositories. Please try again — results may vary."
)


def sse_frame(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


def friendly_error(exc: BaseException) -> str:
    message = str(exc) or "An unexpected error occurred"
    if any(s in message for s in ("JSON", "parse", "Unexpected token")):
        return INCOMPLETE_RESPONSE_MESSAGE
    return message


def _step(step: str, message: str, **extra) -> dict:
    return {"step": step, "message": message, **extra}


def run_analysis(
    url: str,
    ref: RepoRef,
    github: GitHubClient,
    llm: LLMProvider,
    storage: Storage,
    user_id: Optional[str] = None,
    force_refresh: bool = False,
    mode: str = "strict",
    max_attempts: int = 2,
) -> Iterator[dict]:
    owner, repo = ref.owner, ref.repo
    try:
        if not force_refresh:
            cached = storage.get_analysis_by_repo(owner, repo)
            if cached:
                logger.info("Serving cached analysis %s for %s/%s", cached.id, owner, repo)
                yield _step("info", "Loading cached analysis...")
                yield _step("complete", "Analysis complete!", id=cached.id, analysis=cached.analysis_data)
                return

        yield _step("info", "Fetching repository information...")
        repo_info = github.get_repo_info(owner, repo)

        yield _step("tree", "Scanning file structure...")
        tree = github.get_tree(owner, repo, repo_info.default_branch)

        yield _step("languages", "Detecting programming languages...")
        languages = github.get_languages(owner, repo)

        yield _step("files", f"Reading {min(len(tree), MAX_KEY_FILES)} key files...")
        key_files = github.fetch_key_files(owner, repo, tree)

        yield _step("analysis", "AI is analyzing the codebase architecture...")
        analysis: AnalysisResult = analyze_repository(
            llm,
            repo_info,
            tree,
            key_files,
            languages,
            mode=mode,
            max_attempts=max_attempts,
        )

        yield _step("saving", "Saving analysis results...")
        data = analysis.model_dump(mode="json", by_alias=True)
        saved = storage.create_analysis(
            repo_url=url,
            owner=owner,
            repo=repo,
            analysis_data=data,
            user_id=user_id,
        )
        logger.info("Stored analysis %s for %s/%s", saved.id, owner, repo)

        yield _step("complete", "Analysis complete!", id=saved.id, analysis=data)
    except Exception as e:
        logger.exception("Analysis streaming error for %s/%s", owner, repo)
        yield _step("error", friendly_error(e))

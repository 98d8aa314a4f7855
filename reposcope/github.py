from __future__ import annotations

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests
from requests.utils import quote

from reposcope.schemas import KeyFile, LanguageShare, RepoInfo
from reposcope.utils import MAX_KEY_FILES, select_key_files

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
MAX_FILE_CHARS = 3000


class GitHubError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RepoNotFoundError(GitHubError):
    pass


class RateLimitError(GitHubError):
    pass


def _is_rate_limited(resp: requests.Response) -> bool:
    if resp.status_code not in (403, 429):
        return False
    if resp.headers.get("X-RateLimit-Remaining") == "0":
        return True
    return "rate limit" in (resp.text or "").lower()


class GitHubClient:
    def __init__(
        self,
        token: str = "",
        base_url: str = "https://api.github.com",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "User-Agent": "RepoScope",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.authenticated = bool(token)

    def _get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        return self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)

    def _get_json(self, path: str, params: Optional[dict] = None):
        resp = self._get(path, params=params)
        if _is_rate_limited(resp):
            raise RateLimitError(
                "GitHub API rate limit exceeded. Set a GITHUB_TOKEN environment variable "
                "to increase limits from 60 to 5000 requests/hour.",
                status=resp.status_code,
            )
        if resp.status_code >= 400:
            raise GitHubError(f"GitHub API error: {resp.status_code} for {path}", status=resp.status_code)
        return resp.json()

    def _repo_json(self, owner: str, repo: str) -> dict:
        try:
            return self._get_json(f"/repos/{owner}/{repo}")
        except RateLimitError:
            raise
        except GitHubError as e:
            logger.error("[GitHub API] Failed to fetch repo info for %s/%s: %s", owner, repo, e)
            if e.status == 404:
                raise RepoNotFoundError(
                    f"Repository not found: {owner}/{repo}. Make sure it exists and is public.",
                    status=404,
                ) from e
            raise

    def get_repo_info(self, owner: str, repo: str) -> RepoInfo:
        data = self._repo_json(owner, repo)
        return RepoInfo(
            name=data.get("name") or repo,
            owner=(data.get("owner") or {}).get("login") or owner,
            description=data.get("description") or "",
            stars=data.get("stargazers_count") or 0,
            forks=data.get("forks_count") or 0,
            language=data.get("language") or "Unknown",
            url=data.get("html_url") or f"https://github.com/{owner}/{repo}",
            default_branch=data.get("default_branch") or "",
        )

    def get_default_branch(self, owner: str, repo: str) -> str:
        return self._repo_json(owner, repo).get("default_branch") or "HEAD"

    def get_tree(self, owner: str, repo: str, branch: Optional[str] = None) -> list[str]:
        """Blob paths of `branch` (default branch when not given), recursive."""
        branch = branch or self.get_default_branch(owner, repo)
        try:
            data = self._get_json(
                f"/repos/{owner}/{repo}/git/trees/{branch}", params={"recursive": "1"}
            )
        except GitHubError as e:
            logger.error("[GitHub API] Failed to fetch repo tree for %s/%s: %s", owner, repo, e)
            raise

        if data.get("truncated"):
            logger.warning("[GitHub API] Tree for %s/%s is truncated; using partial listing", owner, repo)

        return [
            item["path"]
            for item in data.get("tree", [])
            if item.get("type") == "blob" and item.get("path")
        ]

    def get_languages(self, owner: str, repo: str) -> list[LanguageShare]:
        try:
            data = self._get_json(f"/repos/{owner}/{repo}/languages")
        except RateLimitError:
            raise
        except (GitHubError, requests.RequestException) as e:
            logger.error("[GitHub API] Failed to fetch languages for %s/%s: %s", owner, repo, e)
            return []

        total = sum(data.values())
        if not total:
            return []
        return [
            LanguageShare(name=name, percentage=round(count / total * 100))
            for name, count in data.items()
        ]

    def get_file_content(self, owner: str, repo: str, path: str) -> str:
        try:
            data = self._get_json(f"/repos/{owner}/{repo}/contents/{quote(path)}")
        except (GitHubError, requests.RequestException, ValueError) as e:
            logger.debug("[GitHub API] Skipping %s in %s/%s: %s", path, owner, repo, e)
            return ""
        if not isinstance(data, dict) or not data.get("content"):
            return ""
        try:
            raw = base64.b64decode(data["content"])
        except (ValueError, TypeError):
            return ""
        return raw.decode("utf-8", errors="replace")

    def fetch_key_files(self, owner: str, repo: str, paths: list[str]) -> list[KeyFile]:
        """
        Fetches the heuristically selected files, BATCH_SIZE at a time.
        Order of the selection is preserved; failed reads come back empty.
        """
        selected = select_key_files(paths, max_files=MAX_KEY_FILES)

        def fetch(path: str) -> KeyFile:
            content = self.get_file_content(owner, repo, path)
            return KeyFile(path=path, content=content[:MAX_FILE_CHARS])

        results: list[KeyFile] = []
        with ThreadPoolExecutor(max_workers=BATCH_SIZE) as pool:
            for i in range(0, len(selected), BATCH_SIZE):
                batch = selected[i : i + BATCH_SIZE]
                results.extend(pool.map(fetch, batch))
        return results

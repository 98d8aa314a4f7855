from __future__ import annotations

import re
from typing import Iterable, Optional

from reposcope.schemas import KeyFile, RepoRef

IGNORE_DIRS = {
    ".git", "node_modules", "dist", "build", "target", "vendor",
    ".venv", "venv", "__pycache__", ".pytest_cache", ".mypy_cache",
    ".next", ".turbo", ".parcel-cache", ".cache",
}

KEY_FILE_PATTERNS = (
    # manifests
    "package.json", "requirements.txt", "Pipfile", "pyproject.toml",
    "Cargo.toml", "go.mod", "pom.xml", "build.gradle", "Gemfile", "composer.json",
    # env templates
    ".env.example", ".env.sample",
    # infra
    "docker-compose.yml", "Dockerfile", "Makefile",
    # docs
    "README.md",
    # build/framework configs
    "tsconfig.json", "vite.config.ts", "vite.config.js", "webpack.config.js",
    "next.config.js", "next.config.ts", "nuxt.config.ts", "angular.json",
)

CODE_EXTENSIONS = {
    ".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".rs", ".java",
    ".rb", ".php", ".cs", ".vue", ".svelte",
}

# Path fragments that usually mean "this file wires up or serves routes"
ROUTE_HINTS = (
    "route", "router", "controller", "endpoint", "api", "handler",
    "middleware", "server", "app", "index", "main", "urls", "views",
)

# Path fragments for the rest of the architecture (UI, data, auth, config)
STRUCTURE_HINTS = (
    "page", "screen", "component", "service", "model", "schema",
    "database", "db", "auth", "config",
)

MAX_KEY_FILES = 60

_URL_PATTERNS = (
    re.compile(r"^https?://(?:www\.)?github\.com/([^/]+)/([^/]+)"),
    re.compile(r"^github\.com/([^/]+)/([^/]+)"),
    re.compile(r"^([^/]+)/([^/]+)$"),
)


def parse_github_url(url: str) -> Optional[RepoRef]:
    """
    Pull owner/repo out of the usual ways people paste a GitHub repo:
      https://github.com/owner/repo(.git)(/tree/...)
      github.com/owner/repo
      owner/repo
    Returns None when nothing matches.
    """
    cleaned = (url or "").strip().rstrip("/")
    for pattern in _URL_PATTERNS:
        m = pattern.match(cleaned)
        if not m:
            continue
        owner = m.group(1)
        repo = re.sub(r"\.git$", "", m.group(2))
        # "example.com/foo" is a domain, not an owner
        if owner and repo and "." not in owner:
            return RepoRef(owner=owner, repo=repo)
    return None


def is_ignored(path: str) -> bool:
    return any(part in IGNORE_DIRS for part in path.split("/")[:-1])


def _extension(file_name: str) -> str:
    return "." + file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


def is_key_file(path: str) -> bool:
    file_name = path.rsplit("/", 1)[-1]
    lower = path.lower()
    for p in KEY_FILE_PATTERNS:
        if file_name == p or lower.endswith(p.lower()):
            return True

    if _extension(file_name) not in CODE_EXTENSIONS:
        return False
    if any(h in lower for h in ROUTE_HINTS):
        return True
    return any(h in lower for h in STRUCTURE_HINTS)


def select_key_files(paths: Iterable[str], max_files: int = MAX_KEY_FILES) -> list[str]:
    """
    Heuristic picker over a flat list of tree paths.
    Keeps tree order; manifests/README/configs always qualify, code files
    qualify when their path looks like routing, UI, data or auth code.
    """
    picked: list[str] = []
    seen: set[str] = set()
    for path in paths:
        if not path or path in seen or is_ignored(path):
            continue
        if is_key_file(path):
            picked.append(path)
            seen.add(path)
            if len(picked) >= max_files:
                break
    return picked


def build_tree(paths: list[str], max_entries: int = 600) -> str:
    lines = []
    for count, p in enumerate(paths):
        if count >= max_entries:
            lines.append("... (truncated)")
            break
        lines.append(p)
    return "\n".join(lines)


def stitch_files(files: list[KeyFile], max_total_chars: int = 180_000) -> str:
    """
    Renders fetched files as one prompt block with a total cap.
    """
    chunks = []
    total = 0
    for f in files:
        block = f"--- FILE: {f.path} ---\n{f.content}\n--- END FILE ---"
        if total + len(block) > max_total_chars:
            chunks.append("... (content truncated to fit context budget)")
            break
        chunks.append(block)
        total += len(block)
    return "\n\n".join(chunks)

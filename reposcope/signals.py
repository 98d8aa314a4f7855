from __future__ import annotations

from collections import Counter
from posixpath import dirname

from reposcope.utils import is_ignored

# extension -> language, for the tree-based language ranking
_EXT_LANG = {
    ".py": "Python", ".ts": "TypeScript", ".tsx": "TypeScript",
    ".js": "JavaScript", ".jsx": "JavaScript", ".mjs": "JavaScript",
    ".vue": "Vue", ".svelte": "Svelte",
    ".go": "Go", ".rs": "Rust", ".java": "Java", ".kt": "Kotlin",
    ".rb": "Ruby", ".php": "PHP", ".cs": "C#", ".swift": "Swift",
    ".c": "C", ".h": "C/C++", ".cc": "C++", ".cpp": "C++", ".hpp": "C++",
}

# Manifests, lockfiles and docs that show where a project starts.
# Only matched at depth <= 1.
_ROOT_MARKERS = {
    "package.json", "package-lock.json", "pnpm-lock.yaml", "yarn.lock",
    "pyproject.toml", "requirements.txt", "setup.py", "Pipfile", "poetry.lock", "manage.py",
    "go.mod", "Cargo.toml", "pom.xml", "build.gradle", "build.gradle.kts", "Gemfile", "composer.json",
    "Dockerfile", "docker-compose.yml", "compose.yml", "Makefile", "wrangler.toml",
    "README.md", "README.rst",
}

# Server/app bootstrap files, matched at any depth
_ENTRYPOINTS = {
    "app.py", "main.py", "server.py", "wsgi.py", "asgi.py", "manage.py",
    "index.js", "index.ts", "app.js", "app.ts", "server.js", "server.ts", "main.ts", "main.tsx",
    "main.go", "main.rs", "Main.java", "Program.cs",
}

_MANIFEST_NAMES = {
    "package.json", "pyproject.toml", "go.mod", "Cargo.toml",
    "pom.xml", "build.gradle", "build.gradle.kts", "Gemfile", "composer.json",
}


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    out: list[str] = []
    for x in items:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return out


def build_signals(paths: list[str]) -> dict:
    """
    Cheap, tree-only hints for the prompt. Nothing here reads file contents.
    """
    files = [p for p in paths if p and not is_ignored(p)]

    # --------- languages ----------
    lang_counts: Counter[str] = Counter()
    for p in files:
        name = p.rsplit("/", 1)[-1]
        if "." in name:
            lang = _EXT_LANG.get("." + name.rsplit(".", 1)[-1].lower())
            if lang:
                lang_counts[lang] += 1

    language_rank = [k for k, _ in lang_counts.most_common()]
    primary_language = language_rank[0] if language_rank else None

    # --------- entrypoints ----------
    ep_root = _dedupe([
        p for p in files
        if p.count("/") <= 1 and p.rsplit("/", 1)[-1] in _ROOT_MARKERS
    ])
    ep_any = _dedupe([p for p in files if p.rsplit("/", 1)[-1] in _ENTRYPOINTS])

    # --------- monorepo hint ----------
    # Manifests in several directories is a hint, not a conclusion.
    manifest_paths = [p for p in files if p.rsplit("/", 1)[-1] in _MANIFEST_NAMES]
    monorepo_hint = len({dirname(x) for x in manifest_paths}) >= 2

    return {
        "file_count": len(files),
        "languages": language_rank,
        "language_counts": dict(lang_counts),
        "primary_language": primary_language,
        "entrypoints_near_root": ep_root[:20],
        "entrypoints_anywhere": ep_any[:20],
        "monorepo_hint": monorepo_hint,
        "manifest_paths": manifest_paths[:30],
    }

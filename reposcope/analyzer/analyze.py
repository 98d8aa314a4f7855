from __future__ import annotations

import logging
from typing import Type

from pydantic import BaseModel, ValidationError

from reposcope.analyzer.parsing import AnalysisParseError, extract_json, strip_code_fences
from reposcope.analyzer.prompts import (
    DOCS_SYSTEM,
    build_analysis_prompt,
    full_readme_prompt,
    mermaid_prompt,
    readme_architecture_prompt,
    system_instructions,
)
from reposcope.llm import LLMProvider
from reposcope.render import to_mermaid
from reposcope.schemas import (
    AnalysisResult,
    ApiEndpoint,
    ApiVersion,
    ContributionSuggestion,
    DatabaseMapping,
    DependencyEdge,
    EnvVariable,
    ExternalService,
    FrontendBackendFlow,
    KeyFile,
    LanguageShare,
    RepoInfo,
    TechStack,
)
from reposcope.signals import build_signals

logger = logging.getLogger(__name__)

ANALYSIS_MAX_TOKENS = 8192
DOCS_MAX_TOKENS = 4096
EMPTY_DIAGRAM = "graph TD\n  A[No diagram available]"

_LIST_FIELDS: dict[str, Type[BaseModel]] = {
    "apiEndpoints": ApiEndpoint,
    "frontendBackendFlows": FrontendBackendFlow,
    "externalServices": ExternalService,
    "envVariables": EnvVariable,
    "apiVersioning": ApiVersion,
    "dependencyGraph": DependencyEdge,
    "contributionSuggestions": ContributionSuggestion,
}

_STACK_LISTS = ("frameworks", "libraries", "buildTools", "testing", "deployment")


def _valid_items(raw, model: Type[BaseModel], key: str) -> list:
    """Keeps the well-formed items of a model-produced list, drops the rest."""
    if not isinstance(raw, list):
        return []
    out = []
    for item in raw:
        try:
            out.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping malformed %s item %r: %s", key, item, e.error_count())
    return out


def _str_list(raw) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [s.strip() for s in raw if isinstance(s, str) and s.strip()]


def normalize_analysis(
    data: dict,
    repo_info: RepoInfo,
    languages: list[LanguageShare],
) -> AnalysisResult:
    """
    Turns whatever the model produced into a complete AnalysisResult.
    GitHub's language breakdown wins over the model's when we have one.
    """
    stack = data.get("techStack") if isinstance(data.get("techStack"), dict) else {}
    model_langs = _valid_items(stack.get("languages"), LanguageShare, "techStack.languages")

    tech_stack = TechStack(
        languages=languages or model_langs,
        **{key: _str_list(stack.get(key)) for key in _STACK_LISTS},
    )

    db_raw = data.get("databaseMapping")
    try:
        database_mapping = DatabaseMapping.model_validate(db_raw) if isinstance(db_raw, dict) else DatabaseMapping()
    except ValidationError:
        logger.debug("Dropping malformed databaseMapping %r", db_raw)
        database_mapping = DatabaseMapping()

    lists = {key: _valid_items(data.get(key), model, key) for key, model in _LIST_FIELDS.items()}

    return AnalysisResult.model_validate({
        "repoInfo": repo_info,
        "techStack": tech_stack,
        "databaseMapping": database_mapping,
        "readmeArchitecture": "",
        "mermaidDiagram": "",
        **lists,
    })


def fallback_analysis(
    repo_info: RepoInfo,
    languages: list[LanguageShare],
    raw_text: str = "",
) -> AnalysisResult:
    """Skeleton record used when the model output could not be parsed at all."""
    return AnalysisResult(
        repo_info=repo_info,
        tech_stack=TechStack(languages=languages),
        readme_architecture=raw_text,
    )


def sanitize_analysis(result: AnalysisResult, tree: list[str], mode: str) -> AnalysisResult:
    """
    Strict-mode safety net:
    - Contribution suggestions only point at files that exist in the tree.
    - Dependency edges need both ends.
    """
    if mode != "strict":
        return result

    known = set(tree)
    for s in result.contribution_suggestions:
        # directories are fine too ("src/routes/")
        s.files = [
            f for f in s.files
            if f in known or any(p.startswith(f.rstrip("/") + "/") for p in tree)
        ]

    result.dependency_graph = [
        e for e in result.dependency_graph if e.source.strip() and e.target.strip()
    ]
    return result


def analyze_repository(
    llm: LLMProvider,
    repo_info: RepoInfo,
    tree: list[str],
    key_files: list[KeyFile],
    languages: list[LanguageShare],
    mode: str = "strict",
    max_attempts: int = 2,
) -> AnalysisResult:
    signals = build_signals(tree)
    prompt = build_analysis_prompt(repo_info, tree, key_files, languages, signals)
    system = system_instructions(mode)

    raw = ""
    for attempt in range(1, max_attempts + 1):
        raw = llm.generate(system=system, user=prompt, json_mode=True, max_tokens=ANALYSIS_MAX_TOKENS)
        try:
            data = extract_json(raw)
        except AnalysisParseError as e:
            logger.warning(
                "Unparsable analysis for %s/%s (attempt %d/%d, %d chars): %s",
                repo_info.owner, repo_info.name, attempt, max_attempts, len(raw or ""), e,
            )
            continue
        result = normalize_analysis(data, repo_info, languages)
        return sanitize_analysis(result, tree, mode)

    logger.warning("Falling back to skeleton analysis for %s/%s", repo_info.owner, repo_info.name)
    return fallback_analysis(repo_info, languages, raw_text=raw or "")


def _unwrap_markdown(text: str) -> str:
    """Drops a fence wrapped around the whole document, keeps inner code blocks."""
    text = (text or "").strip()
    if text.startswith("```") and text.endswith("```") and "\n" in text:
        return text.split("\n", 1)[1][:-3].strip()
    return text


def generate_readme_architecture(llm: LLMProvider, analysis: AnalysisResult) -> str:
    text = llm.generate(system=DOCS_SYSTEM, user=readme_architecture_prompt(analysis), max_tokens=DOCS_MAX_TOKENS)
    return _unwrap_markdown(text)


def generate_full_readme(llm: LLMProvider, analysis: AnalysisResult) -> str:
    text = llm.generate(system=DOCS_SYSTEM, user=full_readme_prompt(analysis), max_tokens=DOCS_MAX_TOKENS)
    return _unwrap_markdown(text)


def _looks_like_mermaid(text: str) -> bool:
    first = text.lstrip().split("\n", 1)[0].strip().lower()
    return first.startswith(("graph", "flowchart"))


def generate_mermaid_diagram(llm: LLMProvider, analysis: AnalysisResult) -> str:
    text = strip_code_fences(
        llm.generate(system=DOCS_SYSTEM, user=mermaid_prompt(analysis), max_tokens=DOCS_MAX_TOKENS)
    )
    if _looks_like_mermaid(text):
        return text

    logger.info("Model returned no usable Mermaid for %s; building it locally", analysis.repo_info.name)
    built = to_mermaid(analysis)
    return built or EMPTY_DIAGRAM

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from reposcope.analyzer import (
    analyze_repository,
    generate_full_readme,
    generate_mermaid_diagram,
    generate_readme_architecture,
)
from reposcope.auth import (
    AuthPayload,
    hash_password,
    sign_token,
    validate_signup,
    verify_password,
)
from reposcope.config import DEFAULT_SESSION_SECRET, Settings, get_settings
from reposcope.deps import get_github, get_llm, get_storage, optional_user, require_user
from reposcope.diagram import build_flow_elements
from reposcope.github import GitHubClient, GitHubError, RateLimitError, RepoNotFoundError
from reposcope.llm import LLMConfigError, LLMProvider
from reposcope.pipeline import run_analysis, sse_frame
from reposcope.render import to_architecture_md
from reposcope.schemas import AnalysisResult, FlowGraph
from reposcope.storage import AnalysisRecord, Storage, UsernameTakenError
from reposcope.utils import parse_github_url

_settings = get_settings()
logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("reposcope")

if _settings.session_secret == DEFAULT_SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set; using the built-in fallback secret.")

app = FastAPI(title="RepoScope", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

INVALID_URL_MESSAGE = "Invalid GitHub URL. Please use format: github.com/{username}/{repo}"


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Invalid request body")


@app.exception_handler(LLMConfigError)
async def llm_config_error_handler(request: Request, exc: LLMConfigError):
    return _error(500, str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or "Internal server error")


def _status_for(exc: Exception) -> int:
    if isinstance(exc, RepoNotFoundError):
        return 404
    if isinstance(exc, RateLimitError):
        return 429
    return 500


# ---------------- request models ----------------


class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class UrlRequest(BaseModel):
    url: Optional[str] = None


class AnalyzeRequest(UrlRequest):
    forceRefresh: bool = False


class AnalysisPayload(BaseModel):
    analysis: Optional[dict[str, Any]] = None


def _auth_response(user_id: str, username: str, settings: Settings) -> dict:
    token = sign_token(AuthPayload(userId=user_id, username=username), settings.session_secret)
    return {"token": token, "user": {"id": user_id, "username": username}}


def _analysis_from_payload(req: AnalysisPayload) -> AnalysisResult:
    if not req.analysis:
        raise HTTPException(status_code=400, detail="Analysis data is required")
    try:
        return AnalysisResult.model_validate(req.analysis)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Analysis data is malformed")


def _load_analysis(analysis_id: str, storage: Storage) -> AnalysisRecord:
    try:
        record = storage.get_analysis(int(analysis_id))
    except ValueError:
        record = None
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return record


# ---------------- health ----------------


@app.get("/api/health")
def health(settings: Settings = Depends(get_settings)):
    warnings: list[str] = []
    if not settings.github_token:
        warnings.append(
            "No GitHub authentication configured. API rate limit is 60 requests/hour. "
            "Set GITHUB_TOKEN for 5000 requests/hour."
        )
    if not settings.llm_configured:
        warnings.append(
            f"{settings.llm_provider} API key not configured. Repository analysis will fail."
        )
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": {
            "environment": settings.environment,
            "llmProvider": settings.llm_provider,
            "storageBackend": settings.storage_backend,
            "hasGithubToken": bool(settings.github_token),
            "hasGeminiApiKey": bool(settings.gemini_api_key),
        },
        "warnings": warnings,
    }


# ---------------- auth ----------------


@app.post("/api/auth/signup")
def signup(
    req: Credentials,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
):
    problem = validate_signup(req.username or "", req.password or "")
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    if storage.get_user_by_username(req.username):
        raise HTTPException(status_code=409, detail="Username already taken")
    try:
        user = storage.create_user(req.username, hash_password(req.password))
    except UsernameTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("Created user %s", user.username)
    return _auth_response(user.id, user.username, settings)


@app.post("/api/auth/signin")
def signin(
    req: Credentials,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
):
    if not req.username or not req.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = storage.get_user_by_username(req.username)
    if user is None or not verify_password(req.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _auth_response(user.id, user.username, settings)


@app.get("/api/auth/me")
def me(user: AuthPayload = Depends(require_user)):
    return {"user": {"id": user.userId, "username": user.username}}


@app.get("/api/user/analyses")
def user_analyses(
    user: AuthPayload = Depends(require_user),
    storage: Storage = Depends(get_storage),
):
    return [
        {
            "id": a.id,
            "repoUrl": a.repo_url,
            "owner": a.owner,
            "repo": a.repo,
            "createdAt": a.created_at.isoformat(),
        }
        for a in storage.get_analyses_by_user(user.userId)
    ]


# ---------------- analysis ----------------


@app.post("/api/validate-url")
def validate_url(req: UrlRequest, github: GitHubClient = Depends(get_github)):
    if not req.url:
        return JSONResponse(status_code=400, content={"valid": False, "error": "URL is required"})

    ref = parse_github_url(req.url)
    if ref is None:
        return JSONResponse(status_code=400, content={"valid": False, "error": INVALID_URL_MESSAGE})

    try:
        repo_info = github.get_repo_info(ref.owner, ref.repo)
    except RateLimitError as e:
        return JSONResponse(status_code=429, content={"valid": False, "error": str(e)})
    except GitHubError:
        return JSONResponse(
            status_code=404,
            content={"valid": False, "error": f"Repository not found: {ref.owner}/{ref.repo}"},
        )

    return {
        "valid": True,
        "owner": ref.owner,
        "repo": ref.repo,
        "repoInfo": repo_info.model_dump(by_alias=True),
    }


@app.post("/api/analyze")
def analyze(
    req: AnalyzeRequest,
    settings: Settings = Depends(get_settings),
    github: GitHubClient = Depends(get_github),
    llm: LLMProvider = Depends(get_llm),
    storage: Storage = Depends(get_storage),
    user: Optional[AuthPayload] = Depends(optional_user),
):
    if not req.url:
        raise HTTPException(status_code=400, detail="URL is required")
    if not settings.llm_configured:
        raise HTTPException(
            status_code=500,
            detail="LLM API key is not configured. Please set the GEMINI_API_KEY environment variable.",
        )
    ref = parse_github_url(req.url)
    if ref is None:
        raise HTTPException(status_code=400, detail=INVALID_URL_MESSAGE)

    events = run_analysis(
        req.url,
        ref,
        github=github,
        llm=llm,
        storage=storage,
        user_id=user.userId if user else None,
        force_refresh=req.forceRefresh,
        mode=settings.response_mode,
        max_attempts=settings.analysis_max_attempts,
    )
    return StreamingResponse(
        (sse_frame(e) for e in events),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/api/analysis/{analysis_id}")
def get_analysis(analysis_id: str, storage: Storage = Depends(get_storage)):
    record = _load_analysis(analysis_id, storage)
    return {"id": record.id, "analysis": record.analysis_data}


@app.get("/api/analysis/{analysis_id}/flow", response_model=FlowGraph)
def get_analysis_flow(analysis_id: str, storage: Storage = Depends(get_storage)):
    record = _load_analysis(analysis_id, storage)
    return build_flow_elements(AnalysisResult.model_validate(record.analysis_data))


@app.get("/api/analysis/{analysis_id}/markdown", response_class=PlainTextResponse)
def get_analysis_markdown(analysis_id: str, storage: Storage = Depends(get_storage)):
    record = _load_analysis(analysis_id, storage)
    md = to_architecture_md(AnalysisResult.model_validate(record.analysis_data))
    return PlainTextResponse(md, media_type="text/markdown")


# ---------------- derived documents ----------------


@app.post("/api/generate-readme")
def generate_readme(req: AnalysisPayload, llm: LLMProvider = Depends(get_llm)):
    analysis = _analysis_from_payload(req)
    try:
        return {"readme": generate_readme_architecture(llm, analysis)}
    except LLMConfigError:
        raise
    except Exception as e:
        logger.exception("README generation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/generate-full-readme")
def generate_readme_full(
    req: UrlRequest,
    settings: Settings = Depends(get_settings),
    github: GitHubClient = Depends(get_github),
    llm: LLMProvider = Depends(get_llm),
):
    if not req.url:
        raise HTTPException(status_code=400, detail="Repository URL is required")
    ref = parse_github_url(req.url)
    if ref is None:
        raise HTTPException(status_code=400, detail="Invalid GitHub URL format")

    try:
        repo_info = github.get_repo_info(ref.owner, ref.repo)
        tree = github.get_tree(ref.owner, ref.repo, repo_info.default_branch)
        languages = github.get_languages(ref.owner, ref.repo)
        key_files = github.fetch_key_files(ref.owner, ref.repo, tree)
        analysis = analyze_repository(
            llm,
            repo_info,
            tree,
            key_files,
            languages,
            mode=settings.response_mode,
            max_attempts=settings.analysis_max_attempts,
        )
        readme = generate_full_readme(llm, analysis)
    except LLMConfigError:
        raise
    except Exception as e:
        logger.exception("Full README generation failed for %s/%s", ref.owner, ref.repo)
        raise HTTPException(status_code=_status_for(e), detail=str(e))

    return {"readme": readme, "analysis": analysis.model_dump(mode="json", by_alias=True)}


@app.post("/api/generate-mermaid")
def generate_mermaid(req: AnalysisPayload, llm: LLMProvider = Depends(get_llm)):
    analysis = _analysis_from_payload(req)
    try:
        return {"mermaid": generate_mermaid_diagram(llm, analysis)}
    except LLMConfigError:
        raise
    except Exception as e:
        logger.exception("Mermaid generation failed")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

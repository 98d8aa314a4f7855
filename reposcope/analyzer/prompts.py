import json

from reposcope.schemas import AnalysisResult, KeyFile, LanguageShare, RepoInfo
from reposcope.utils import build_tree, stitch_files


def system_instructions(mode: str) -> str:
    base = """You are a senior software architect analyzing a GitHub repository for developers who are new to it.

Hard rules:
- Only include endpoints, services, models and dependencies that you can find evidence for in the provided files.
- Use ONLY the provided REPO SIGNALS, file tree and file contents.
- Be specific with file paths taken from the actual file tree.

Output format:
- Return ONLY valid JSON. No markdown or prose outside JSON.
"""
    if mode == "helpful":
        base += """
Helpful mode:
- You may describe likely flows or services that are strongly implied by conventions, but never present a guess as fact.
"""
    return base


JSON_CONTRACT = """Provide a detailed JSON analysis with the following structure. Be thorough and accurate based on the actual code:

{
  "techStack": {
    "languages": [{"name": "string", "percentage": number}],
    "frameworks": ["string"],
    "libraries": ["string"],
    "buildTools": ["string"],
    "testing": ["string"],
    "deployment": ["string"]
  },
  "apiEndpoints": [
    {
      "method": "GET|POST|PUT|DELETE|PATCH",
      "path": "/api/...",
      "file": "path/to/file",
      "group": "ServiceName or ControllerName",
      "description": "What this endpoint does",
      "dependencies": ["other endpoints or services it calls"],
      "parameters": ["param1", "param2"],
      "responseType": "JSON object description"
    }
  ],
  "frontendBackendFlows": [
    {
      "frontendFile": "path/to/frontend/file",
      "frontendComponent": "ComponentName",
      "apiCalls": [{"method": "GET", "path": "/api/...", "purpose": "description"}]
    }
  ],
  "databaseMapping": {
    "database": "PostgreSQL|MongoDB|MySQL|SQLite|None",
    "orm": "Drizzle|Prisma|TypeORM|Mongoose|SQLAlchemy|None",
    "models": [{"name": "ModelName", "table": "table_name", "file": "path/to/file"}],
    "services": ["services that interact with DB"]
  },
  "externalServices": [
    {
      "name": "ServiceName",
      "type": "auth|payment|cloud|ai|email|storage|monitoring|other",
      "file": "path/to/file",
      "description": "How it's used"
    }
  ],
  "envVariables": [
    {"name": "ENV_VAR_NAME", "file": "path/to/file", "description": "What it's used for", "required": true}
  ],
  "apiVersioning": [
    {"version": "v1", "basePath": "/api/v1", "endpoints": 5}
  ],
  "dependencyGraph": [
    {"source": "/api/endpoint1 or ServiceName", "target": "/api/endpoint2 or ExternalService", "type": "calls|depends|imports"}
  ],
  "contributionSuggestions": [
    {
      "title": "Short title",
      "description": "Detailed description of what to contribute",
      "difficulty": "beginner|intermediate|advanced",
      "files": ["relevant/files"],
      "reason": "Why this is a good contribution"
    }
  ]
}

Rules:
- Group API endpoints by their controller or service module
- For frontendBackendFlows, trace actual API calls from frontend components
- For contributionSuggestions, suggest 3-5 practical areas. Look for: missing tests, documentation gaps, error handling improvements, feature additions based on TODOs/FIXMEs
- If no API versioning is found, return an empty array
- If no database is found, set database to "None"
- Be specific with file paths from the actual file tree
- Return ONLY valid JSON, no markdown formatting
"""


def build_analysis_prompt(
    repo_info: RepoInfo,
    tree: list[str],
    key_files: list[KeyFile],
    languages: list[LanguageShare],
    signals: dict,
) -> str:
    langs = json.dumps([l.model_dump() for l in languages])
    return (
        f"REPOSITORY: {repo_info.owner}/{repo_info.name}\n"
        f"DESCRIPTION: {repo_info.description}\n"
        f"PRIMARY LANGUAGE: {repo_info.language}\n"
        f"LANGUAGES: {langs}\n\n"
        "REPO SIGNALS (ground truth hints):\n"
        f"{json.dumps(signals, indent=2)}\n\n"
        "FILE TREE:\n"
        f"{build_tree(tree)}\n\n"
        "KEY FILES:\n"
        f"{stitch_files(key_files)}\n\n"
        + JSON_CONTRACT
    )


DOCS_SYSTEM = "You are a senior software architect who writes clear, accurate technical documentation."


def readme_architecture_prompt(analysis: AnalysisResult) -> str:
    r = analysis.repo_info
    return f"""Based on the following repository analysis, generate a professional README.md "Architecture" section in markdown format. Include:
1. High-level architecture overview
2. Tech stack summary table
3. API endpoints table
4. Database schema overview
5. External integrations
6. Directory structure explanation

Repository: {r.owner}/{r.name}
Analysis: {analysis.model_dump_json(by_alias=True, indent=2)}

Return ONLY the markdown content, starting with ## Architecture"""


def full_readme_prompt(analysis: AnalysisResult) -> str:
    r = analysis.repo_info
    return f"""Generate a professional README.md for the repository {r.owner}/{r.name} based on this analysis:
{analysis.model_dump_json(by_alias=True, indent=2)}

Include sections for: Overview, Features, Tech Stack, Installation, Usage, API Documentation, Architecture, Contributing.
Only document commands, endpoints and environment variables that appear in the analysis.
Return ONLY the markdown content, starting with a level-1 heading."""


def mermaid_prompt(analysis: AnalysisResult) -> str:
    r = analysis.repo_info

    def dump(items) -> str:
        return json.dumps([i.model_dump(by_alias=True) for i in items])

    return f"""Based on the following repository analysis, generate a Mermaid flowchart diagram showing:
- API endpoints and their relationships
- Frontend components connecting to APIs
- Database connections
- External service integrations

Repository: {r.owner}/{r.name}

API Endpoints: {dump(analysis.api_endpoints)}
Frontend Flows: {dump(analysis.frontend_backend_flows)}
Database: {analysis.database_mapping.model_dump_json(by_alias=True)}
External Services: {dump(analysis.external_services)}
Dependencies: {dump(analysis.dependency_graph)}

Return ONLY valid Mermaid syntax starting with 'graph TD' or 'flowchart TD'. No markdown code fences."""

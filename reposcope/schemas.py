from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire format is camelCase; Python attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # Model output often says null for "unknown"; let field defaults apply.
        if not isinstance(data, dict):
            return data
        return {
            k: [x for x in v if x is not None] if isinstance(v, list) else v
            for k, v in data.items()
            if v is not None
        }


class RepoRef(BaseModel):
    owner: str
    repo: str


class RepoInfo(CamelModel):
    name: str
    owner: str
    description: str = ""
    stars: int = 0
    forks: int = 0
    language: str = "Unknown"
    url: str = ""
    default_branch: str = ""


class LanguageShare(CamelModel):
    name: str
    percentage: int = 0


class KeyFile(CamelModel):
    path: str
    content: str = ""


class TechStack(CamelModel):
    languages: List[LanguageShare] = []
    frameworks: List[str] = []
    libraries: List[str] = []
    build_tools: List[str] = []
    testing: List[str] = []
    deployment: List[str] = []


class ApiEndpoint(CamelModel):
    method: str = "GET"
    path: str
    file: str = ""
    group: str = ""
    description: str = ""
    dependencies: List[str] = []
    parameters: Optional[List[str]] = None
    response_type: Optional[str] = None

    @field_validator("method")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return (v or "GET").strip().upper()


class ApiCall(CamelModel):
    method: str = "GET"
    path: str
    purpose: str = ""

    @field_validator("method")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return (v or "GET").strip().upper()


class FrontendBackendFlow(CamelModel):
    frontend_file: str = ""
    frontend_component: str
    api_calls: List[ApiCall] = []


class DatabaseModel(CamelModel):
    name: str
    table: str = ""
    file: str = ""


class DatabaseMapping(CamelModel):
    database: str = "None"
    orm: str = "None"
    models: List[DatabaseModel] = []
    services: List[str] = []


class ExternalService(CamelModel):
    name: str
    type: str = "other"
    file: str = ""
    description: str = ""


class EnvVariable(CamelModel):
    name: str
    file: str = ""
    description: str = ""
    required: bool = False


class ApiVersion(CamelModel):
    version: str
    base_path: str = ""
    endpoints: int = 0


class DependencyEdge(CamelModel):
    source: str
    target: str
    type: str = "depends"


Difficulty = Literal["beginner", "intermediate", "advanced"]


class ContributionSuggestion(CamelModel):
    title: str
    description: str = ""
    difficulty: Difficulty = "intermediate"
    files: List[str] = []
    reason: str = ""

    @field_validator("difficulty", mode="before")
    @classmethod
    def _known_difficulty(cls, v):
        low = str(v or "").strip().lower()
        return low if low in {"beginner", "intermediate", "advanced"} else "intermediate"


class AnalysisResult(CamelModel):
    repo_info: RepoInfo
    tech_stack: TechStack = Field(default_factory=TechStack)
    api_endpoints: List[ApiEndpoint] = []
    frontend_backend_flows: List[FrontendBackendFlow] = []
    database_mapping: DatabaseMapping = Field(default_factory=DatabaseMapping)
    external_services: List[ExternalService] = []
    env_variables: List[EnvVariable] = []
    api_versioning: List[ApiVersion] = []
    dependency_graph: List[DependencyEdge] = []
    contribution_suggestions: List[ContributionSuggestion] = []
    readme_architecture: str = ""
    mermaid_diagram: str = ""


# --- architecture flow layout ---


class Position(BaseModel):
    x: float
    y: float


class FlowNode(BaseModel):
    id: str
    label: str
    kind: Literal["group", "api", "frontend", "database", "model", "external"]
    position: Position


class FlowEdge(BaseModel):
    id: str
    source: str
    target: str
    kind: Literal["group", "frontend", "database", "dependency"]
    animated: bool = False


class FlowGraph(BaseModel):
    nodes: List[FlowNode] = []
    edges: List[FlowEdge] = []

import json
import unittest

from fakes import LANGUAGES, REPO_INFO, SAMPLE_MODEL_OUTPUT, SAMPLE_TREE, FailingLLM, FakeLLM, sample_analysis_json

from reposcope.analyzer import (
    analyze_repository,
    fallback_analysis,
    generate_full_readme,
    generate_mermaid_diagram,
    generate_readme_architecture,
    normalize_analysis,
)
from reposcope.schemas import KeyFile


class TestNormalizeAnalysis(unittest.TestCase):
    def test_github_languages_win_and_bad_items_drop(self) -> None:
        result = normalize_analysis(SAMPLE_MODEL_OUTPUT, REPO_INFO, LANGUAGES)

        self.assertEqual([l.name for l in result.tech_stack.languages], ["Python", "TypeScript"])
        self.assertEqual(result.tech_stack.libraries, ["SQLAlchemy"])
        # the endpoint without a path is dropped
        self.assertEqual(len(result.api_endpoints), 3)
        self.assertEqual(result.api_endpoints[0].method, "GET")
        self.assertEqual(result.contribution_suggestions[0].difficulty, "beginner")
        self.assertEqual(result.readme_architecture, "")
        self.assertEqual(result.mermaid_diagram, "")

    def test_model_languages_used_when_github_has_none(self) -> None:
        result = normalize_analysis(SAMPLE_MODEL_OUTPUT, REPO_INFO, [])
        self.assertEqual([l.name for l in result.tech_stack.languages], ["Python"])

    def test_missing_sections_get_defaults(self) -> None:
        result = normalize_analysis({"apiEndpoints": "not a list"}, REPO_INFO, [])
        self.assertEqual(result.api_endpoints, [])
        self.assertEqual(result.database_mapping.database, "None")
        self.assertEqual(result.database_mapping.orm, "None")
        self.assertEqual(result.tech_stack.frameworks, [])

    def test_null_fields_fall_back_to_defaults(self) -> None:
        data = {
            "databaseMapping": {
                "database": "PostgreSQL",
                "orm": None,
                "models": [{"name": "User", "table": "users", "file": None}],
                "services": None,
            },
            "externalServices": [{"name": "Stripe", "type": None, "file": None, "description": "Charges"}],
            "apiEndpoints": [
                {"method": None, "path": "/api/users", "file": "app/routes/users.py", "description": None},
            ],
            "contributionSuggestions": [
                {"title": "Add tests", "difficulty": None, "files": ["app/main.py", None], "reason": None},
            ],
        }
        result = normalize_analysis(data, REPO_INFO, LANGUAGES)

        db = result.database_mapping
        self.assertEqual((db.database, db.orm), ("PostgreSQL", "None"))
        self.assertEqual([(m.name, m.file) for m in db.models], [("User", "")])
        self.assertEqual(db.services, [])

        self.assertEqual(len(result.external_services), 1)
        self.assertEqual(result.external_services[0].type, "other")

        ep = result.api_endpoints[0]
        self.assertEqual((ep.method, ep.path, ep.description), ("GET", "/api/users", ""))

        s = result.contribution_suggestions[0]
        self.assertEqual((s.difficulty, s.files, s.reason), ("intermediate", ["app/main.py"], ""))

    def test_required_fields_still_required(self) -> None:
        data = {"externalServices": [{"name": None, "type": "payment"}], "apiEndpoints": [{"path": None}]}
        result = normalize_analysis(data, REPO_INFO, LANGUAGES)
        self.assertEqual(result.external_services, [])
        self.assertEqual(result.api_endpoints, [])

    def test_wire_format_is_camel_case(self) -> None:
        data = normalize_analysis(SAMPLE_MODEL_OUTPUT, REPO_INFO, LANGUAGES).model_dump(by_alias=True)
        self.assertIn("repoInfo", data)
        self.assertIn("buildTools", data["techStack"])
        self.assertIn("frontendComponent", data["frontendBackendFlows"][0])
        self.assertIn("contributionSuggestions", data)


class TestAnalyzeRepository(unittest.TestCase):
    key_files = [KeyFile(path="app/main.py", content="app = FastAPI()")]

    def test_prompt_carries_repo_context_and_json_mode(self) -> None:
        llm = FakeLLM(sample_analysis_json())
        analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES)

        self.assertEqual(len(llm.calls), 1)
        call = llm.calls[0]
        self.assertTrue(call["json_mode"])
        self.assertEqual(call["max_tokens"], 8192)
        self.assertIn("REPOSITORY: octo/demo", call["user"])
        self.assertIn("--- FILE: app/main.py ---", call["user"])
        self.assertIn("app/routes/users.py", call["user"])
        self.assertIn("REPO SIGNALS", call["user"])

    def test_strict_mode_drops_unknown_files_and_empty_edges(self) -> None:
        llm = FakeLLM(sample_analysis_json())
        result = analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES, mode="strict")

        self.assertEqual(result.contribution_suggestions[0].files, ["app/routes/users.py", "app/routes/"])
        self.assertEqual(len(result.dependency_graph), 1)

    def test_helpful_mode_keeps_model_claims(self) -> None:
        llm = FakeLLM(sample_analysis_json())
        result = analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES, mode="helpful")
        self.assertEqual(len(result.contribution_suggestions[0].files), 3)
        self.assertIn("Helpful mode", llm.calls[0]["system"])

    def test_retries_then_succeeds(self) -> None:
        llm = FakeLLM("sorry, no JSON today", sample_analysis_json())
        result = analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES, max_attempts=2)
        self.assertEqual(len(llm.calls), 2)
        self.assertEqual(result.database_mapping.database, "PostgreSQL")

    def test_falls_back_to_skeleton(self) -> None:
        llm = FakeLLM("The repository is a FastAPI service.")
        result = analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES, max_attempts=3)

        self.assertEqual(len(llm.calls), 3)
        self.assertEqual(result.repo_info, REPO_INFO)
        self.assertEqual(result.api_endpoints, [])
        self.assertEqual(result.tech_stack.languages, LANGUAGES)
        self.assertEqual(result.readme_architecture, "The repository is a FastAPI service.")

    def test_truncated_reply_is_salvaged(self) -> None:
        full = sample_analysis_json()
        cut = full[: full.index('"externalServices"') + 30]
        llm = FakeLLM(cut)
        result = analyze_repository(llm, REPO_INFO, SAMPLE_TREE, self.key_files, LANGUAGES)
        self.assertEqual(len(llm.calls), 1)
        self.assertEqual(len(result.api_endpoints), 3)
        self.assertEqual(result.database_mapping.orm, "SQLAlchemy")

    def test_transport_errors_propagate(self) -> None:
        with self.assertRaises(RuntimeError):
            analyze_repository(FailingLLM(RuntimeError("quota")), REPO_INFO, SAMPLE_TREE, [], LANGUAGES)


class TestDerivedDocuments(unittest.TestCase):
    def setUp(self) -> None:
        self.analysis = normalize_analysis(SAMPLE_MODEL_OUTPUT, REPO_INFO, LANGUAGES)

    def test_readme_architecture_unwraps_outer_fence(self) -> None:
        llm = FakeLLM("```markdown\n## Architecture\n\n```bash\nmake run\n```\n```")
        readme = generate_readme_architecture(llm, self.analysis)
        self.assertTrue(readme.startswith("## Architecture"))
        self.assertIn("```bash\nmake run\n```", readme)
        self.assertEqual(llm.calls[0]["max_tokens"], 4096)
        self.assertFalse(llm.calls[0]["json_mode"])

    def test_full_readme_prompt_lists_sections(self) -> None:
        llm = FakeLLM("# demo\n\nOverview")
        self.assertEqual(generate_full_readme(llm, self.analysis), "# demo\n\nOverview")
        self.assertIn("Installation", llm.calls[0]["user"])
        self.assertIn('"apiEndpoints"', llm.calls[0]["user"])

    def test_mermaid_from_model(self) -> None:
        llm = FakeLLM("```mermaid\nflowchart TD\n  A-->B\n```")
        self.assertEqual(generate_mermaid_diagram(llm, self.analysis), "flowchart TD\n  A-->B")

    def test_mermaid_falls_back_to_local_diagram(self) -> None:
        llm = FakeLLM("I can't draw that.")
        diagram = generate_mermaid_diagram(llm, self.analysis)
        self.assertTrue(diagram.startswith("graph TD"))
        self.assertIn("UsersController", diagram)

    def test_mermaid_placeholder_for_empty_analysis(self) -> None:
        llm = FakeLLM("")
        diagram = generate_mermaid_diagram(llm, fallback_analysis(REPO_INFO, []))
        self.assertEqual(diagram, "graph TD\n  A[No diagram available]")


if __name__ == "__main__":
    unittest.main()

import unittest

from fakes import LANGUAGES, REPO_INFO, SAMPLE_MODEL_OUTPUT

from reposcope.analyzer import fallback_analysis, normalize_analysis
from reposcope.diagram import api_node_id, build_flow_elements
from reposcope.render import group_endpoints, to_architecture_md, to_mermaid


def sample():
    return normalize_analysis(SAMPLE_MODEL_OUTPUT, REPO_INFO, LANGUAGES)


class TestGroupEndpoints(unittest.TestCase):
    def test_order_and_other_bucket(self) -> None:
        groups = group_endpoints(sample().api_endpoints)
        self.assertEqual(list(groups), ["UsersController", "Other"])
        self.assertEqual(len(groups["UsersController"]), 2)


class TestFlowElements(unittest.TestCase):
    def setUp(self) -> None:
        self.graph = build_flow_elements(sample())
        self.nodes = {n.id: n for n in self.graph.nodes}

    def test_columns(self) -> None:
        group = self.nodes["group-UsersController"]
        self.assertEqual((group.position.x, group.position.y), (260, 0))

        get_users = self.nodes[api_node_id("GET", "/api/users")]
        post_users = self.nodes[api_node_id("POST", "/api/users")]
        self.assertEqual((get_users.position.x, get_users.position.y), (300, 60))
        self.assertEqual(post_users.position.y, 130)

        # second group starts after two endpoints and the gap
        other = self.nodes["group-Other"]
        self.assertEqual(other.position.y, 60 + 2 * 70 + 40)

        self.assertEqual(self.nodes["frontend-0"].position.x, 0)
        self.assertEqual(self.nodes["database-node"].position.x, 650)
        self.assertEqual(self.nodes["database-node"].label, "PostgreSQL (SQLAlchemy)")
        self.assertEqual((self.nodes["model-0"].position.x, self.nodes["model-0"].position.y), (690, 60))
        self.assertEqual(self.nodes["ext-0"].position.x, 1000)

    def test_edges(self) -> None:
        by_kind = {}
        for e in self.graph.edges:
            by_kind.setdefault(e.kind, []).append(e)

        self.assertEqual(len(by_kind["group"]), 3)
        # the call to an unknown endpoint has no edge
        self.assertEqual(len(by_kind["frontend"]), 1)
        self.assertTrue(by_kind["frontend"][0].animated)
        self.assertEqual(by_kind["frontend"][0].target, api_node_id("GET", "/api/users"))
        self.assertEqual(len(by_kind["database"]), 1)

        dep = by_kind["dependency"][0]
        self.assertEqual((dep.source, dep.target), (api_node_id("GET", "/api/users"), "ext-0"))

    def test_repeated_endpoint_gets_one_node(self) -> None:
        data = dict(SAMPLE_MODEL_OUTPUT)
        data["apiEndpoints"] = [
            {"method": "GET", "path": "/api/users", "group": "Users"},
            {"method": "get", "path": "/api/users", "group": "Users"},
            {"method": "GET", "path": "/api/users", "group": "Admin"},
            {"method": "POST", "path": "/api/users", "group": "Users"},
        ]
        graph = build_flow_elements(normalize_analysis(data, REPO_INFO, LANGUAGES))

        ids = [n.id for n in graph.nodes]
        self.assertEqual(len(ids), len(set(ids)))
        nodes = {n.id: n for n in graph.nodes}
        self.assertEqual(nodes[api_node_id("POST", "/api/users")].position.y, 60 + 70)
        # the Admin group has nothing left to show, so it only takes the header and gap
        self.assertEqual(nodes["group-Admin"].position.y, 60 + 2 * 70 + 40)

    def test_empty_analysis(self) -> None:
        graph = build_flow_elements(fallback_analysis(REPO_INFO, []))
        self.assertEqual(graph.nodes, [])
        self.assertEqual(graph.edges, [])

    def test_stable(self) -> None:
        again = build_flow_elements(sample())
        self.assertEqual(again, self.graph)


class TestMermaid(unittest.TestCase):
    def test_flowchart(self) -> None:
        text = to_mermaid(sample())
        lines = text.splitlines()
        self.assertEqual(lines[0], "graph TD")
        self.assertIn('  G0["UsersController"]', lines)
        self.assertIn('  API_GET__api_users["GET /api/users"]', lines)
        self.assertIn("  G0 --> API_GET__api_users", lines)
        self.assertIn("  FE0 --> API_GET__api_users", lines)
        self.assertIn("  DB --> M0", lines)
        self.assertIn("  API_GET__api_users -.->|calls| EXT0", lines)

    def test_quotes_escaped(self) -> None:
        data = dict(SAMPLE_MODEL_OUTPUT)
        data["frontendBackendFlows"] = [{"frontendComponent": 'Say "hi"', "apiCalls": []}]
        text = to_mermaid(normalize_analysis(data, REPO_INFO, LANGUAGES))
        self.assertIn('FE0(["Say #quot;hi#quot;"])', text)

    def test_nothing_to_draw(self) -> None:
        self.assertEqual(to_mermaid(fallback_analysis(REPO_INFO, [])), "")


class TestArchitectureMarkdown(unittest.TestCase):
    def test_sections(self) -> None:
        md = to_architecture_md(sample())
        self.assertIn("# Architecture — octo/demo", md)
        self.assertIn("| GET | `/api/users` | `app/routes/users.py` | List users |", md)
        self.assertIn("**Database:** PostgreSQL", md)
        self.assertIn("```mermaid\ngraph TD", md)
        self.assertIn("**Add tests for users routes** (beginner)", md)

    def test_placeholders(self) -> None:
        md = to_architecture_md(fallback_analysis(REPO_INFO, []))
        self.assertIn("No API endpoints were identified.", md)
        self.assertIn("No database detected.", md)
        self.assertIn("Diagram not available", md)
        self.assertIn("- Not confirmed in code", md)


if __name__ == "__main__":
    unittest.main()

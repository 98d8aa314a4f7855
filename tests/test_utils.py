import unittest

from reposcope.schemas import KeyFile
from reposcope.signals import build_signals
from reposcope.utils import build_tree, is_key_file, parse_github_url, select_key_files, stitch_files


class TestParseGithubUrl(unittest.TestCase):
    def assertRef(self, url: str, owner: str, repo: str) -> None:
        ref = parse_github_url(url)
        self.assertIsNotNone(ref, url)
        self.assertEqual((ref.owner, ref.repo), (owner, repo))

    def test_accepted_forms(self) -> None:
        self.assertRef("https://github.com/octo/demo", "octo", "demo")
        self.assertRef("http://www.github.com/octo/demo", "octo", "demo")
        self.assertRef("https://github.com/octo/demo.git", "octo", "demo")
        self.assertRef("https://github.com/octo/demo/tree/main/src", "octo", "demo")
        self.assertRef("github.com/octo/demo", "octo", "demo")
        self.assertRef("octo/demo", "octo", "demo")
        self.assertRef("  octo/demo///  ", "octo", "demo")

    def test_rejected_forms(self) -> None:
        for url in ["", "   ", "demo", "example.com/demo", "https://gitlab.com/octo/demo", "a/b/c"]:
            self.assertIsNone(parse_github_url(url), url)


class TestKeyFileSelection(unittest.TestCase):
    def test_manifests_and_configs_always_qualify(self) -> None:
        for path in ["package.json", "services/api/go.mod", ".env.example", "Dockerfile", "README.md"]:
            self.assertTrue(is_key_file(path), path)

    def test_code_files_need_a_hint(self) -> None:
        self.assertTrue(is_key_file("src/routes/users.ts"))
        self.assertTrue(is_key_file("lib/models/user.rb"))
        self.assertTrue(is_key_file("web/src/components/Button.vue"))
        self.assertFalse(is_key_file("lib/strings.py"))
        self.assertFalse(is_key_file("assets/logo.png"))
        # "api" in a non-code file does not count
        self.assertFalse(is_key_file("docs/api.txt"))

    def test_select_preserves_order_skips_vendored_and_caps(self) -> None:
        tree = [
            "node_modules/express/index.js",
            "README.md",
            "lib/strings.py",
            "src/server.ts",
            "dist/app.js",
            "src/db/schema.ts",
        ]
        self.assertEqual(select_key_files(tree), ["README.md", "src/server.ts", "src/db/schema.ts"])

        many = [f"src/routes/r{i}.ts" for i in range(100)]
        picked = select_key_files(many)
        self.assertEqual(len(picked), 60)
        self.assertEqual(picked[0], "src/routes/r0.ts")


class TestPromptBlocks(unittest.TestCase):
    def test_build_tree_truncates(self) -> None:
        out = build_tree([f"f{i}" for i in range(5)], max_entries=3)
        self.assertEqual(out.splitlines(), ["f0", "f1", "f2", "... (truncated)"])

    def test_stitch_files_format_and_budget(self) -> None:
        files = [KeyFile(path="a.py", content="print(1)"), KeyFile(path="b.py", content="x" * 500)]
        out = stitch_files(files, max_total_chars=100)
        self.assertIn("--- FILE: a.py ---\nprint(1)\n--- END FILE ---", out)
        self.assertNotIn("b.py", out)
        self.assertIn("truncated", out)


class TestSignals(unittest.TestCase):
    def test_signals_from_tree(self) -> None:
        signals = build_signals([
            "package.json",
            "web/package.json",
            "web/src/index.ts",
            "web/src/app.tsx",
            "server/main.py",
            "node_modules/x/index.js",
        ])
        self.assertEqual(signals["primary_language"], "TypeScript")
        self.assertEqual(signals["language_counts"], {"TypeScript": 2, "Python": 1})
        self.assertIn("package.json", signals["entrypoints_near_root"])
        self.assertIn("web/package.json", signals["entrypoints_near_root"])
        self.assertIn("server/main.py", signals["entrypoints_anywhere"])
        self.assertTrue(signals["monorepo_hint"])
        self.assertEqual(signals["file_count"], 5)


if __name__ == "__main__":
    unittest.main()

import json
import tempfile
import unittest
from pathlib import Path

from depscope.__main__ import main

MANIFEST = """
[[modules]]
name = "app"
group = "com.example"
version = "1.0"

[modules.dependencies]
implementation = ["commons-collections:commons-collections:3.1"]

[repository."commons-collections:commons-collections:3.1"]

[audit]
simulation_enabled = true
simulated_vulnerability_found = {found}
color_enabled = false
output_dir = "reports"
"""


class TestMain(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write_manifest(self, found):
        (self.directory / "depscope.toml").write_text(MANIFEST.format(found=found), encoding="utf-8")

    def test_clean_audit_exits_zero(self):
        self.write_manifest("false")

        self.assertEqual(main(["-C", str(self.directory), "audit"]), 0)

    def test_vulnerabilities_exit_one(self):
        self.write_manifest("true")

        self.assertEqual(main(["-C", str(self.directory), "audit"]), 1)

    def test_missing_project_exits_two(self):
        self.assertEqual(main(["-C", str(self.directory), "audit"]), 2)

    def test_format_override_writes_bom(self):
        self.write_manifest("true")

        code = main(["-C", str(self.directory), "audit", "--format", "json-cyclonedx-1-4"])

        self.assertEqual(code, 1)
        with open(self.directory / "reports" / "depscope-cyclonedx.json", encoding="utf-8") as f:
            bom = json.load(f)
        self.assertEqual(len(bom["vulnerabilities"]), 1)


if __name__ == "__main__":
    unittest.main()

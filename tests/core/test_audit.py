import io
import json
import tempfile
import unittest
from pathlib import Path

from rich.console import Console

from depscope.build.manifest import parse_manifest
from depscope.config import load_settings
from depscope.core.audit import AuditTask, build_coordinate_map, create_client, write_module_index
from depscope.core.finder import DependenciesFinder
from depscope.core.model import PackageCoordinate, ResolvedDependency
from depscope.core.scanner import OssIndexClient, SimulatedClient
from depscope.errors import ScopeResolutionError, VulnerabilitiesDetected

COMMONS_PURL = "pkg:maven/commons-collections/commons-collections@3.1"

SINGLE_MODULE = """
[[modules]]
name = "app"
group = "com.example"
version = "1.0"

[modules.dependencies]
implementation = ["commons-collections:commons-collections:3.1"]

[repository."commons-collections:commons-collections:3.1"]
"""


def settings_for(**table):
    return load_settings(dict(simulation_enabled=True, print_banner=False, **table), environ={})


class TestAuditTask(unittest.TestCase):

    def setUp(self):
        self.output = io.StringIO()
        self.console = Console(file=self.output, no_color=True, width=200)

    def test_clean_dependency_flat_output(self):
        task = AuditTask(parse_manifest(SINGLE_MODULE), settings_for(show_all=True), console=self.console)

        lines = task.audit()

        self.assertEqual(lines, [f"{COMMONS_PURL} - No vulnerabilities found!"])

    def test_clean_dependency_tree_output(self):
        settings = settings_for(show_all=True, output_format="dependency-graph")
        task = AuditTask(parse_manifest(SINGLE_MODULE), settings, console=self.console)

        lines = task.audit()

        self.assertEqual(lines, ["+--- commons-collections:commons-collections:3.1: 0 vulnerabilities detected"])

    def test_vulnerable_dependency_fails_the_audit(self):
        settings = settings_for(simulated_vulnerability_found=True)
        task = AuditTask(parse_manifest(SINGLE_MODULE), settings, console=self.console)

        with self.assertRaises(VulnerabilitiesDetected) as ctx:
            task.audit()

        self.assertEqual(ctx.exception.count, 1)
        self.assertIn(f"{COMMONS_PURL} - 1 vulnerability found!", self.output.getvalue())

    def test_excluded_vulnerability_passes(self):
        settings = settings_for(
            simulated_vulnerability_found=True,
            exclude_vulnerability_ids=["SIMULATED-commons-collections"],
        )
        task = AuditTask(parse_manifest(SINGLE_MODULE), settings, console=self.console)

        self.assertEqual(task.audit(), ["No vulnerabilities found!"])

    def test_resolution_failure_is_not_a_vulnerability_failure(self):
        project = parse_manifest(SINGLE_MODULE.replace("implementation = [", "implementation = [\"project:ghost\", "))
        task = AuditTask(project, settings_for(), console=self.console)

        with self.assertRaises(ScopeResolutionError):
            task.audit()

    def test_client_selection(self):
        self.assertIsInstance(create_client(settings_for()), SimulatedClient)
        self.assertIsInstance(create_client(load_settings({}, environ={})), OssIndexClient)


class TestCoordinateMap(unittest.TestCase):

    def test_walks_cycles_once(self):
        a = ResolvedDependency("g", "a", "1")
        b = ResolvedDependency("g", "b", "1")
        a.add_child(b)
        b.add_child(a)

        coordinates = build_coordinate_map([a])

        self.assertEqual(coordinates, {
            "g:a:1": PackageCoordinate("g", "a", "1"),
            "g:b:1": PackageCoordinate("g", "b", "1"),
        })


class TestModuleIndex(unittest.TestCase):

    def test_writes_one_file_per_module(self):
        with tempfile.TemporaryDirectory() as tmp:
            project = parse_manifest(SINGLE_MODULE, Path(tmp))
            modules = DependenciesFinder().find_modules(project)

            paths = write_module_index(modules)

            self.assertEqual(paths, [Path(tmp).absolute() / "build" / "depscope" / "module.json"])
            with open(paths[0], encoding="utf-8") as f:
                data = json.load(f)

        self.assertEqual(data["id"], "com.example:app:1.0")
        self.assertIsNone(data["parent_id"])
        self.assertEqual(data["dependencies"][0]["id"], "commons-collections:commons-collections:3.1")
        self.assertEqual(data["consumed_artifacts"][0]["pathname"], "commons-collections-3.1.jar")


if __name__ == "__main__":
    unittest.main()

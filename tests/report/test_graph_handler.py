import io
import unittest

from rich.console import Console

from depscope.config import AuditSettings
from depscope.core.model import Dependency, PackageCoordinate, Vulnerability, VulnerabilityReport
from depscope.report.graph import LEGEND, DependencyGraphResponseHandler

E = Dependency("g:e:1")
D = Dependency("g:d:1", children=(E,))
B = Dependency("g:b:1", children=(D,))
C = Dependency("g:c:1", children=(Dependency("g:d:1", repeated=True),))
A = Dependency("g:a:1", True, (C, B))
F = Dependency("g:f:1", True)

COORDINATES = {
    name: PackageCoordinate(*name.split(":"))
    for name in ("g:a:1", "g:b:1", "g:c:1", "g:d:1", "g:e:1", "g:f:1")
}

V1 = Vulnerability("V1", "Bad thing", cvss_score=7.5, reference="https://ossindex/V1")


def reports(vulnerable=()):
    return {
        coordinate: VulnerabilityReport(coordinate, (V1,) if gav in vulnerable else ())
        for gav, coordinate in COORDINATES.items()
    }


class TestDependencyGraphResponseHandler(unittest.TestCase):

    def setUp(self):
        self.output = io.StringIO()
        self.console = Console(file=self.output, no_color=True, width=300)

    def handle(self, show_all, vulnerable=()):
        handler = DependencyGraphResponseHandler(AuditSettings(show_all=show_all), self.console)
        return handler.handle([A, F], COORDINATES, reports(vulnerable))

    def test_full_tree(self):
        lines, has_vulnerabilities = self.handle(True, vulnerable={"g:d:1"})

        self.assertTrue(has_vulnerabilities)
        self.assertEqual(lines, [
            "+--- g:a:1: 0 vulnerabilities detected",
            "|    +--- g:b:1: 0 vulnerabilities detected",
            "|    |    +--- g:d:1: 1 vulnerabilities detected",
            "|    |         Bad thing (7.5/10, High): https://ossindex/V1",
            "|    |    |    +--- g:e:1: 0 vulnerabilities detected",
            "|    +--- g:c:1: 0 vulnerabilities detected",
            "|    |    +--- g:d:1 (*): 1 vulnerabilities detected",
            "|    |         Bad thing (7.5/10, High): https://ossindex/V1",
            "+--- g:f:1: 0 vulnerabilities detected",
        ])
        self.assertIn(LEGEND, self.output.getvalue())

    def test_only_vulnerable_branches(self):
        lines, has_vulnerabilities = self.handle(False, vulnerable={"g:d:1"})

        self.assertTrue(has_vulnerabilities)
        self.assertEqual(lines, [
            "+--- g:a:1: 0 vulnerabilities detected",
            "|    +--- g:b:1: 0 vulnerabilities detected",
            "|    |    +--- g:d:1: 1 vulnerabilities detected",
            "|    |         Bad thing (7.5/10, High): https://ossindex/V1",
            "|    +--- g:c:1: 0 vulnerabilities detected",
            "|    |    +--- g:d:1 (*): 1 vulnerabilities detected",
            "|    |         Bad thing (7.5/10, High): https://ossindex/V1",
        ])

    def test_leaf_without_children_has_no_marker(self):
        lines, _ = self.handle(True, vulnerable={"g:e:1"})

        self.assertEqual(lines.count("|    |    |    +--- g:e:1: 1 vulnerabilities detected"), 1)
        self.assertFalse(any("(*)" in line and "g:e:1" in line for line in lines))

    def test_nothing_vulnerable(self):
        lines, has_vulnerabilities = self.handle(False)

        self.assertFalse(has_vulnerabilities)
        self.assertEqual(lines, ["No vulnerabilities found!"])

    def test_single_clean_dependency(self):
        handler = DependencyGraphResponseHandler(AuditSettings(show_all=True), self.console)

        lines, has_vulnerabilities = handler.handle([F], COORDINATES, reports())

        self.assertFalse(has_vulnerabilities)
        self.assertEqual(lines, ["+--- g:f:1: 0 vulnerabilities detected"])

    def test_unknown_coordinate_is_skipped(self):
        handler = DependencyGraphResponseHandler(AuditSettings(show_all=True), self.console)

        lines, _ = handler.handle([Dependency("x:y:1", True)], COORDINATES, reports())

        self.assertEqual(lines, [])


if __name__ == "__main__":
    unittest.main()

from typing import Dict, List, Sequence, Set, Tuple

from depscope.core.model import Dependency
from depscope.core.serializer import iter_tree
from depscope.report.base import NO_VULNERABILITIES, CoordinateMap, ReportMap, ResponseHandler
from depscope.report.severity import format_score, style_for

DEPENDENCY_PREFIX = "+--- "
CHILD_INDENT = "|    "
REPEATED_MARKER = "(*)"
LEGEND = f"{REPEATED_MARKER} - if present, dependencies omitted (listed previously)"


class DependencyGraphResponseHandler(ResponseHandler):
    """Tree mode, laid out like `gradle dependencies`."""

    def handle(
        self,
        dependencies: Sequence[Dependency],
        coordinates: CoordinateMap,
        reports: ReportMap,
    ) -> Tuple[List[str], bool]:
        self._coordinates = coordinates
        self._reports = reports
        self._expanded: Dict[str, Dependency] = {}
        for node in iter_tree(dependencies):
            if not node.repeated:
                self._expanded.setdefault(node.id, node)
        self._vulnerable: Dict[str, bool] = {}

        if not self.settings.show_all and not any(self._is_vulnerable(d.id, set()) for d in dependencies):
            self.narrate(NO_VULNERABILITIES, "green")
            return [NO_VULNERABILITIES], False

        lines: List[str] = []
        printed: Set[str] = set()
        has_vulnerabilities = False
        for dependency in dependencies:
            if self._walk(dependency, DEPENDENCY_PREFIX, printed, lines):
                has_vulnerabilities = True

        if dependencies:
            self.console.print()
            self.narrate(LEGEND)
        return lines, has_vulnerabilities

    def _is_vulnerable(self, dependency_id: str, visiting: Set[str]) -> bool:
        """Whether the subtree below `dependency_id` carries any vulnerability."""
        if dependency_id in self._vulnerable:
            return self._vulnerable[dependency_id]
        if dependency_id in visiting:
            return False
        visiting.add(dependency_id)

        result = bool(self.vulnerabilities_of(self._coordinates.get(dependency_id), self._reports))
        node = self._expanded.get(dependency_id)
        if not result and node is not None:
            result = any(self._is_vulnerable(child.id, visiting) for child in node.children)

        visiting.discard(dependency_id)
        self._vulnerable[dependency_id] = result
        return result

    def _walk(self, dependency: Dependency, prefix: str, printed: Set[str], lines: List[str]) -> bool:
        coordinate = self._coordinates.get(dependency.id)
        if coordinate is None:
            return False
        if not self.settings.show_all and not self._is_vulnerable(dependency.id, set()):
            return False

        node = self._expanded.get(dependency.id, dependency)
        vulnerabilities = self.vulnerabilities_of(coordinate, self._reports)
        has_vulnerabilities = bool(vulnerabilities)
        repeated = dependency.id in printed
        printed.add(dependency.id)

        marker = f" {REPEATED_MARKER}" if repeated and node.children else ""
        line = f"{prefix}{dependency.id}{marker}: {len(vulnerabilities)} vulnerabilities detected"
        lines.append(line)
        self.narrate(line, style_for(max(v.cvss_score or 0.0 for v in vulnerabilities)) if vulnerabilities else "")

        indent = prefix.replace(DEPENDENCY_PREFIX, " " * len(DEPENDENCY_PREFIX), 1)
        for vulnerability in vulnerabilities:
            text = vulnerability.title
            if vulnerability.cvss_score is not None:
                text += f" {format_score(vulnerability.cvss_score)}"
            detail = f"{indent}{text}: {vulnerability.reference}"
            lines.append(detail)
            self.narrate(detail, style_for(vulnerability.cvss_score))

        if repeated:
            return has_vulnerabilities

        child_prefix = prefix.replace(DEPENDENCY_PREFIX, CHILD_INDENT, 1) + DEPENDENCY_PREFIX
        for child in sorted(node.children, key=lambda c: c.id):
            if self._walk(child, child_prefix, printed, lines):
                has_vulnerabilities = True
        return has_vulnerabilities

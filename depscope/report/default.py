from typing import List, Sequence, Tuple

from depscope.__version__ import __version__
from depscope.core.model import Dependency, PackageCoordinate, Vulnerability
from depscope.report.base import NO_VULNERABILITIES, CoordinateMap, ReportMap, ResponseHandler
from depscope.report.severity import format_score, style_for

DESCRIPTION_MAX_LENGTH = 140


def summarize(coordinate: PackageCoordinate, vulnerabilities: List[Vulnerability]) -> str:
    if not vulnerabilities:
        found = NO_VULNERABILITIES
    elif len(vulnerabilities) == 1:
        found = "1 vulnerability found!"
    else:
        found = f"{len(vulnerabilities)} vulnerabilities found"
    return f"{coordinate.purl} - {found}"


def abbreviate(text: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    text = text.replace("\n", " ")
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


class DefaultResponseHandler(ResponseHandler):
    """Flat mode: one line per coordinate, details underneath."""

    def handle(
        self,
        dependencies: Sequence[Dependency],
        coordinates: CoordinateMap,
        reports: ReportMap,
    ) -> Tuple[List[str], bool]:
        targets = self.unique_coordinates(coordinates)

        if not self.settings.show_all:
            targets = [c for c in targets if self.vulnerabilities_of(c, reports)]
            if not targets:
                self.narrate(NO_VULNERABILITIES, "green")
                return [NO_VULNERABILITIES], False

        if self.settings.print_banner:
            self.console.rule(f"depscope v{__version__}")
        self.narrate(f"Checking vulnerabilities in {len(targets)} dependencies")

        lines = []
        has_vulnerabilities = False

        for index, coordinate in enumerate(targets, start=1):
            vulnerabilities = self.vulnerabilities_of(coordinate, reports)
            line = summarize(coordinate, vulnerabilities)
            lines.append(line)

            if vulnerabilities:
                has_vulnerabilities = True
                worst = max((v.cvss_score or 0.0) for v in vulnerabilities)
                self.narrate(f"[{index}/{len(targets)}] - {line}", style_for(worst))
            else:
                self.narrate(f"[{index}/{len(targets)}] - {line}", "green")

            for vulnerability in vulnerabilities:
                self._narrate_details(vulnerability)

        return lines, has_vulnerabilities

    def _narrate_details(self, vulnerability: Vulnerability) -> None:
        style = style_for(vulnerability.cvss_score)
        details = [
            ("Vulnerability Title", vulnerability.title),
            ("ID", vulnerability.id),
            ("Description", abbreviate(vulnerability.description)),
            ("CVSS Score", format_score(vulnerability.cvss_score)),
            ("CVSS Vector", vulnerability.cvss_vector or "Unspecified"),
            ("CVE", vulnerability.cve or "Unspecified"),
            ("Reference", vulnerability.reference),
        ]
        self.console.print()
        for label, value in details:
            self.narrate(f"   {label}:  {value}", style)

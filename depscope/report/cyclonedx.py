import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from depscope.__version__ import __version__
from depscope.core.model import Dependency, PackageCoordinate, Vulnerability
from depscope.errors import ReportError
from depscope.report.base import CoordinateMap, ReportMap, ResponseHandler
from depscope.report.severity import get_assessment

FILE_NAME_OUTPUT = "depscope-cyclonedx.json"
SPEC_VERSION = "1.4"
NVD_URL = "https://nvd.nist.gov/vuln/detail/"


def rating_method(vector: Optional[str]) -> str:
    if vector and vector.startswith("CVSS:3.1/"):
        return "CVSSv31"
    if vector and vector.startswith("CVSS:3"):
        return "CVSSv3"
    return "other"


def build_component(coordinate: PackageCoordinate, component_type: str) -> Dict[str, Any]:
    return {
        "type": component_type,
        "bom-ref": coordinate.purl,
        "group": coordinate.namespace,
        "name": coordinate.name,
        "version": coordinate.version,
        "purl": coordinate.purl,
    }


def build_vulnerability(vulnerability: Vulnerability) -> Dict[str, Any]:
    source = {"name": "OSS Index", "url": vulnerability.reference}
    severity = get_assessment(vulnerability.cvss_score).lower() if vulnerability.cvss_score is not None else "unknown"

    entry: Dict[str, Any] = {
        "id": vulnerability.id,
        "source": source,
    }
    if vulnerability.cve:
        entry["references"] = [
            {"id": vulnerability.cve, "source": {"name": "NVD", "url": NVD_URL + vulnerability.cve}}
        ]

    rating: Dict[str, Any] = {"source": source, "severity": severity}
    if vulnerability.cvss_score is not None:
        rating["score"] = vulnerability.cvss_score
    rating["method"] = rating_method(vulnerability.cvss_vector)
    rating["vector"] = vulnerability.cvss_vector or "Unspecified"
    entry["ratings"] = [rating]

    if vulnerability.cwe:
        digits = re.sub(r"\D+", "", vulnerability.cwe)
        if digits:
            entry["cwes"] = [int(digits)]
    if vulnerability.description:
        entry["description"] = vulnerability.description
    if vulnerability.external_references:
        entry["advisories"] = [{"url": url} for url in vulnerability.external_references]
    entry["tools"] = [{"vendor": "Sonatype", "name": "OSS Index"}]
    entry["affects"] = []
    return entry


def build_affect(coordinate: PackageCoordinate, vulnerability: Vulnerability) -> Dict[str, Any]:
    affect: Dict[str, Any] = {"ref": coordinate.purl}
    if vulnerability.version_ranges:
        affect["versions"] = [{"range": r, "status": "affected"} for r in vulnerability.version_ranges]
    return affect


class CycloneDxResponseHandler(ResponseHandler):
    """Writes a CycloneDX 1.4 JSON bill of materials.

    A vulnerability reported against several components is emitted once, with one
    `affects` entry per component.
    """

    def handle(
        self,
        dependencies: Sequence[Dependency],
        coordinates: CoordinateMap,
        reports: ReportMap,
    ) -> Tuple[Optional[Dict[str, Any]], bool]:
        targets = self.unique_coordinates(coordinates)
        has_vulnerabilities = any(self.vulnerabilities_of(c, reports) for c in targets)

        if not self.settings.show_all:
            targets = [c for c in targets if self.vulnerabilities_of(c, reports)]
        if not targets:
            logging.info("No components to report, skipping bill of materials")
            return None, False

        bom = self.build_bom(targets, reports)
        path = self.write(bom)
        self.narrate(f"CycloneDX SBOM file: {path}")
        return bom, has_vulnerabilities

    def build_bom(self, targets: List[PackageCoordinate], reports: ReportMap) -> Dict[str, Any]:
        components = [build_component(c, self.settings.cyclonedx_component_type) for c in targets]

        vulnerabilities: Dict[str, Dict[str, Any]] = {}
        for coordinate in targets:
            for vulnerability in self.vulnerabilities_of(coordinate, reports):
                entry = vulnerabilities.get(vulnerability.id)
                if entry is None:
                    entry = vulnerabilities[vulnerability.id] = build_vulnerability(vulnerability)
                entry["affects"].append(build_affect(coordinate, vulnerability))

        bom: Dict[str, Any] = {
            "bomFormat": "CycloneDX",
            "specVersion": SPEC_VERSION,
            "serialNumber": f"urn:uuid:{uuid.uuid4()}",
            "version": 1,
            "metadata": {
                "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                "tools": [{"vendor": "depscope", "name": "depscope", "version": __version__}],
            },
            "components": components,
        }
        if vulnerabilities:
            bom["vulnerabilities"] = list(vulnerabilities.values())
        return bom

    def write(self, bom: Dict[str, Any]) -> Path:
        path = Path(self.settings.output_dir) / FILE_NAME_OUTPUT
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(bom, f, indent=2)
        except OSError as e:
            raise ReportError(f"Could not write bill of materials to {path}: {e}") from e
        logging.info(f"Bill of materials written to {path}")
        return path

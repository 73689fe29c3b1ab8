from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

MAVEN = "maven"


@dataclass(frozen=True)
class PackageCoordinate:
    """Join key between resolved dependencies and vulnerability reports."""

    namespace: str
    name: str
    version: str
    qualifier: Optional[str] = None
    ecosystem: str = MAVEN

    @property
    def purl(self) -> str:
        text = f"pkg:{self.ecosystem}/{self.namespace}/{self.name}@{self.version}"
        if self.qualifier:
            text += f"?{self.qualifier}"
        return text

    @property
    def gav(self) -> str:
        return f"{self.namespace}:{self.name}:{self.version}"

    @classmethod
    def parse(cls, text: str) -> "PackageCoordinate":
        """Accepts either a package URL or a group:name:version string."""
        text = text.strip()
        if text.startswith("pkg:"):
            body, _, qualifier = text[4:].partition("?")
            ecosystem, _, rest = body.partition("/")
            path, _, version = rest.rpartition("@")
            namespace, _, name = path.rpartition("/")
            if not (ecosystem and name and version):
                raise ValueError(f"Invalid package URL: {text}")
            return cls(namespace, name, version, qualifier or None, ecosystem)

        parts = text.split(":")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Invalid coordinate, expected group:name:version: {text}")
        return cls(*parts)

    def __str__(self) -> str:
        return self.purl


@dataclass(frozen=True)
class Vulnerability:
    id: str
    title: str = ""
    description: str = ""
    cvss_score: Optional[float] = None
    cvss_vector: Optional[str] = None
    cve: Optional[str] = None
    cwe: Optional[str] = None
    reference: str = ""
    external_references: Tuple[str, ...] = ()
    version_ranges: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VulnerabilityReport:
    coordinate: PackageCoordinate
    vulnerabilities: Tuple[Vulnerability, ...] = ()
    description: str = ""
    reference: str = ""

    def sorted_vulnerabilities(self) -> List[Vulnerability]:
        # Unscored entries sort last
        return sorted(
            self.vulnerabilities,
            key=lambda v: v.cvss_score if v.cvss_score is not None else -1.0,
            reverse=True,
        )


@dataclass(frozen=True)
class ExclusionSpec:
    vulnerability_ids: FrozenSet[str] = frozenset()
    coordinates: FrozenSet[PackageCoordinate] = frozenset()

    def apply(
        self, reports: Dict[PackageCoordinate, VulnerabilityReport]
    ) -> Dict[PackageCoordinate, VulnerabilityReport]:
        """Returns a filtered copy of the report map, the input is left untouched."""
        filtered = {}
        for coordinate, report in reports.items():
            if coordinate in self.coordinates:
                continue
            kept = tuple(v for v in report.vulnerabilities if v.id not in self.vulnerability_ids)
            if len(kept) != len(report.vulnerabilities):
                report = VulnerabilityReport(coordinate, kept, report.description, report.reference)
            filtered[coordinate] = report
        return filtered


@dataclass(eq=False)
class ResolvedDependency:
    """Node of the raw resolved graph.

    Parent links are back-edges, so the graph can contain cycles. Equality is identity.
    """

    group: str
    name: str
    version: str
    scope: str = ""
    children: List["ResolvedDependency"] = field(default_factory=list)
    parents: List["ResolvedDependency"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"

    def add_child(self, child: "ResolvedDependency") -> None:
        if child not in self.children:
            self.children.append(child)
        if self not in child.parents:
            child.parents.append(self)

    def to_coordinate(self) -> PackageCoordinate:
        return PackageCoordinate(self.group, self.name, self.version)

    def __repr__(self) -> str:
        return f"ResolvedDependency({self.id}, scope={self.scope!r}, children={len(self.children)})"


@dataclass(frozen=True)
class ResolvedArtifact:
    id: str
    file: Path
    type: str = "jar"


@dataclass(frozen=True)
class Artifact:
    id: str
    pathname: str
    monitored: bool = True


@dataclass(frozen=True)
class Dependency:
    """Acyclic presentation node.

    `repeated` marks a leaf reference to a coordinate expanded elsewhere in the tree.
    """

    id: str
    is_direct: bool = False
    children: Tuple["Dependency", ...] = ()
    repeated: bool = False


@dataclass(frozen=True)
class Module:
    id: str
    pathname: str
    parent_id: Optional[str] = None
    consumed_artifacts: Tuple[Artifact, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()

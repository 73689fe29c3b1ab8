import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from rich.console import Console

from depscope.build.base import BuildProject
from depscope.config import AuditSettings
from depscope.core.finder import DependenciesFinder
from depscope.core.model import Dependency, Module, PackageCoordinate, ResolvedDependency
from depscope.core.scanner import OssIndexClient, SimulatedClient
from depscope.core.serializer import serialize
from depscope.errors import ReportError, VulnerabilitiesDetected
from depscope.report import render

MODULE_INDEX_DIR = Path("build") / "depscope"
MODULE_INDEX_FILE = "module.json"


def build_coordinate_map(dependencies: Iterable[ResolvedDependency]) -> Dict[str, PackageCoordinate]:
    """Maps every id reachable from the given roots to its package coordinate."""
    coordinates: Dict[str, PackageCoordinate] = {}
    visited: Set[str] = set()
    pending = list(dependencies)
    while pending:
        node = pending.pop(0)
        if node.id in visited:
            continue
        visited.add(node.id)
        coordinates[node.id] = node.to_coordinate()
        pending.extend(node.children)
    return coordinates


def create_client(settings: AuditSettings):
    if settings.simulation_enabled:
        return SimulatedClient(settings.simulated_vulnerability_found)
    return OssIndexClient(settings.username, settings.token)


class AuditTask:
    """Resolve, look up, render: the whole audit of one module tree."""

    def __init__(
        self,
        root: BuildProject,
        settings: AuditSettings,
        finder: Optional[DependenciesFinder] = None,
        client=None,
        console: Optional[Console] = None,
    ) -> None:
        self.root = root
        self.settings = settings
        self.finder = finder or DependenciesFinder()
        self.client = client or create_client(settings)
        self.console = console

    def collect(self) -> Tuple[List[Dependency], Dict[str, PackageCoordinate]]:
        resolved = self.finder.find_resolved_dependencies(
            self.root,
            self.settings.all_scopes,
            self.settings.variant_attributes,
            self.settings.exclude_compile_only,
        )
        processed: Set[str] = set()
        tree = [serialize(dependency, True, processed) for dependency in resolved]
        return tree, build_coordinate_map(resolved)

    def audit(self) -> Any:
        tree, coordinates = self.collect()
        logging.info(f"Checking vulnerabilities in {len(coordinates)} dependencies")

        reports = self.client.fetch_reports(list(dict.fromkeys(coordinates.values())))
        payload, has_vulnerabilities = render(tree, coordinates, reports, self.settings, console=self.console)

        if has_vulnerabilities:
            filtered = self.settings.exclusions.apply(reports)
            count = sum(1 for report in filtered.values() if report.vulnerabilities)
            raise VulnerabilitiesDetected(count)
        return payload


def write_module_index(modules: Iterable[Module]) -> List[Path]:
    """Writes each module as JSON under `<module path>/build/depscope/`."""
    written = []
    for module in modules:
        path = Path(module.pathname) / MODULE_INDEX_DIR / MODULE_INDEX_FILE
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(module), f, indent=2)
        except OSError as e:
            raise ReportError(f"Could not write module index {path}: {e}") from e
        logging.debug(f"Module index written to {path}")
        written.append(path)
    return written

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape

from depscope.config import AuditSettings
from depscope.core.model import Dependency, PackageCoordinate, Vulnerability, VulnerabilityReport

NO_VULNERABILITIES = "No vulnerabilities found!"

CoordinateMap = Dict[str, PackageCoordinate]
ReportMap = Dict[PackageCoordinate, VulnerabilityReport]


class ResponseHandler(ABC):
    """Base class inherited by every output mode.

    Reports handed to `handle` already went through the exclusion filter.
    """

    def __init__(self, settings: AuditSettings, console: Optional[Console] = None) -> None:
        self.settings = settings
        self.console = console or Console(no_color=not settings.color_enabled, highlight=False)

    @abstractmethod
    def handle(
        self,
        dependencies: Sequence[Dependency],
        coordinates: CoordinateMap,
        reports: ReportMap,
    ) -> Tuple[Any, bool]:
        """Returns the rendered payload and whether any vulnerability was found."""
        pass

    @staticmethod
    def vulnerabilities_of(coordinate: Optional[PackageCoordinate], reports: ReportMap) -> List[Vulnerability]:
        report = reports.get(coordinate) if coordinate is not None else None
        return report.sorted_vulnerabilities() if report is not None else []

    @staticmethod
    def unique_coordinates(coordinates: CoordinateMap) -> List[PackageCoordinate]:
        return list(dict.fromkeys(coordinates.values()))

    def narrate(self, text: str, style: str = "") -> None:
        text = escape(text)
        self.console.print(f"[{style}]{text}[/]" if style else text)

from typing import Any, Optional, Sequence, Tuple

from rich.console import Console

from depscope.config import AuditSettings, OutputFormat
from depscope.core.model import Dependency
from depscope.report.base import CoordinateMap, ReportMap, ResponseHandler
from depscope.report.cyclonedx import CycloneDxResponseHandler
from depscope.report.default import DefaultResponseHandler
from depscope.report.graph import DependencyGraphResponseHandler

HANDLERS = {
    OutputFormat.DEFAULT: DefaultResponseHandler,
    OutputFormat.DEPENDENCY_GRAPH: DependencyGraphResponseHandler,
    OutputFormat.JSON_CYCLONE_DX_14: CycloneDxResponseHandler,
}


def render(
    dependencies: Sequence[Dependency],
    coordinates: CoordinateMap,
    reports: ReportMap,
    settings: AuditSettings,
    output_format: Optional[OutputFormat] = None,
    console: Optional[Console] = None,
) -> Tuple[Any, bool]:
    """Filters the reports through the configured exclusions, then hands them to the selected renderer."""
    reports = settings.exclusions.apply(reports)
    handler: ResponseHandler = HANDLERS[output_format or settings.output_format](settings, console)
    return handler.handle(dependencies, coordinates, reports)

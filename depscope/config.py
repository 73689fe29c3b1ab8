import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional

from depscope.core.model import ExclusionSpec, PackageCoordinate
from depscope.errors import ConfigurationError

USERNAME_ENV = "DEPSCOPE_OSSINDEX_USERNAME"
TOKEN_ENV = "DEPSCOPE_OSSINDEX_TOKEN"


class OutputFormat(Enum):
    DEFAULT = "default"
    DEPENDENCY_GRAPH = "dependency-graph"
    JSON_CYCLONE_DX_14 = "json-cyclonedx-1-4"


@dataclass
class AuditSettings:
    all_scopes: bool = False
    modules_excluded: FrozenSet[str] = frozenset()
    variant_attributes: Dict[str, str] = field(default_factory=dict)
    exclude_compile_only: bool = False
    show_all: bool = False
    color_enabled: bool = True
    print_banner: bool = True
    output_format: OutputFormat = OutputFormat.DEFAULT
    cyclonedx_component_type: str = "library"
    exclusions: ExclusionSpec = field(default_factory=ExclusionSpec)
    simulation_enabled: bool = False
    simulated_vulnerability_found: bool = False
    username: str = ""
    token: str = ""
    output_dir: Path = Path(".")


def _bool(table: Mapping[str, Any], key: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be true or false, got {value!r}")
    return value


def _strings(table: Mapping[str, Any], key: str) -> FrozenSet[str]:
    value = table.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{key}' must be a list of strings")
    return frozenset(value)


def load_settings(table: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> AuditSettings:
    """Builds the settings from the manifest `[audit]` table; credentials may come from the environment."""
    table = table or {}
    environ = os.environ if environ is None else environ

    try:
        output_format = OutputFormat(table.get("output_format", OutputFormat.DEFAULT.value))
    except ValueError:
        known = ", ".join(f.value for f in OutputFormat)
        raise ConfigurationError(f"Unknown output_format '{table.get('output_format')}', expected one of: {known}")

    variant_attributes = table.get("variant_attributes", {})
    if not isinstance(variant_attributes, dict):
        raise ConfigurationError("'variant_attributes' must be a table")

    try:
        excluded_coordinates = frozenset(
            PackageCoordinate.parse(c) for c in _strings(table, "exclude_coordinates")
        )
    except ValueError as e:
        raise ConfigurationError(str(e))

    return AuditSettings(
        all_scopes=_bool(table, "all_scopes", False),
        modules_excluded=_strings(table, "modules_excluded"),
        variant_attributes={str(k): str(v) for k, v in variant_attributes.items()},
        exclude_compile_only=_bool(table, "exclude_compile_only", False),
        show_all=_bool(table, "show_all", False),
        color_enabled=_bool(table, "color_enabled", True),
        print_banner=_bool(table, "print_banner", True),
        output_format=output_format,
        cyclonedx_component_type=str(table.get("cyclonedx_component_type", "library")),
        exclusions=ExclusionSpec(_strings(table, "exclude_vulnerability_ids"), excluded_coordinates),
        simulation_enabled=_bool(table, "simulation_enabled", False),
        simulated_vulnerability_found=_bool(table, "simulated_vulnerability_found", False),
        username=environ.get(USERNAME_ENV, str(table.get("username", ""))),
        token=environ.get(TOKEN_ENV, str(table.get("token", ""))),
        output_dir=Path(table.get("output_dir", ".")),
    )

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from depscope.build.base import BuildProject, BuildScope, DeclaredDependency, ProjectProvider, ResolvedScope
from depscope.core.model import ResolvedArtifact, ResolvedDependency
from depscope.core.scopes import is_shadow_scope
from depscope.core.variants import ARTIFACT_TYPE_ATTRIBUTE, JAR_TYPE, JAVA_API, JAVA_RUNTIME, USAGE_ATTRIBUTE, disambiguate
from depscope.errors import ConfigurationError, ResolutionError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

MANIFEST_FILE = "depscope.toml"

PROJECT_PREFIX = "project:"

UNSPECIFIED_VERSION = "unspecified"

RUNTIME_CLASSPATH = "runtimeClasspath"

# name, resolvable, extends, usage
JAVA_SCOPES = [
    ("implementation", False, [], None),
    ("compileOnly", False, [], None),
    ("runtimeOnly", False, [], None),
    ("compileClasspath", True, ["implementation", "compileOnly"], JAVA_API),
    ("runtimeClasspath", True, ["implementation", "runtimeOnly"], JAVA_RUNTIME),
    ("testImplementation", False, ["implementation"], None),
    ("testCompileOnly", False, [], None),
    ("testRuntimeOnly", False, ["runtimeOnly"], None),
    ("testCompileClasspath", True, ["testImplementation", "testCompileOnly"], JAVA_API),
    ("testRuntimeClasspath", True, ["testImplementation", "testRuntimeOnly"], JAVA_RUNTIME),
]

ANDROID_SCOPES = JAVA_SCOPES + [
    ("releaseCompileClasspath", True, ["implementation", "compileOnly"], JAVA_API),
    ("releaseRuntimeClasspath", True, ["implementation", "runtimeOnly"], JAVA_RUNTIME),
    ("debugCompileClasspath", True, ["implementation", "compileOnly"], JAVA_API),
    ("debugRuntimeClasspath", True, ["implementation", "runtimeOnly"], JAVA_RUNTIME),
]

SCOPE_PRESETS = {
    "base": [],
    "java": JAVA_SCOPES,
    "android": ANDROID_SCOPES,
}


@dataclass
class Component:
    group: str
    name: str
    version: str
    dependencies: List[DeclaredDependency] = field(default_factory=list)
    variants: Dict[str, List[str]] = field(default_factory=dict)
    file: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


def parse_declared(text: str) -> DeclaredDependency:
    text = text.strip()
    if text.startswith(PROJECT_PREFIX):
        return DeclaredDependency(project=text[len(PROJECT_PREFIX):])

    parts = text.split(":")
    if len(parts) != 3 or not all(parts):
        raise ConfigurationError(f"Invalid dependency '{text}', expected group:name:version or project:<name>")
    return DeclaredDependency(*parts)


class Repository:
    """In-memory component catalogue the manifest scopes resolve against."""

    def __init__(self, components: Dict[str, Component]) -> None:
        self.components = components
        self.projects: Dict[str, "ManifestProject"] = {}

    def resolve(self, scope: "ManifestScope") -> ResolvedScope:
        nodes: Dict[str, ResolvedDependency] = {}
        artifacts: Dict[str, ResolvedArtifact] = {}
        first_level = []

        for declared in scope.all_dependencies:
            node = self._resolve(declared, scope, nodes, artifacts)
            if node not in first_level:
                first_level.append(node)

        return ResolvedScope(first_level, list(artifacts.values()))

    def _resolve(self, declared, scope, nodes, artifacts) -> ResolvedDependency:
        if declared.is_module:
            return self._resolve_project(declared, scope, nodes, artifacts)

        key = declared.id
        if key in nodes:
            return nodes[key]

        component = self.components.get(key)
        if component is None:
            raise ResolutionError(f"Could not find {key} (required by scope '{scope.name}')")

        artifact_type = JAR_TYPE
        for attribute, candidates in component.variants.items():
            chosen = disambiguate(
                scope.attributes.get(attribute), candidates, scope.disambiguation_rules.get(attribute)
            )
            if chosen is None:
                raise ResolutionError(
                    f"Cannot choose between the variants of {key} for attribute '{attribute}': {candidates}"
                )
            if attribute == ARTIFACT_TYPE_ATTRIBUTE:
                artifact_type = chosen

        node = ResolvedDependency(component.group, component.name, component.version, scope.name)
        nodes[key] = node

        file = component.file or f"{component.name}-{component.version}.{artifact_type}"
        artifacts[key] = ResolvedArtifact(key, Path(file), artifact_type)

        for child in component.dependencies:
            node.add_child(self._resolve(child, scope, nodes, artifacts))

        return node

    def _resolve_project(self, declared, scope, nodes, artifacts) -> ResolvedDependency:
        target = self.projects.get(declared.project)
        if target is None:
            raise ResolutionError(f"Project '{declared.project}' not found (required by scope '{scope.name}')")

        version = target.version or UNSPECIFIED_VERSION
        key = f"{target.group}:{target.name}:{version}"
        if key in nodes:
            return nodes[key]

        node = ResolvedDependency(target.group, target.name, version, scope.name)
        nodes[key] = node

        target_scope = None if is_shadow_scope(scope) else target.find_scope(scope.name)
        if target_scope is None:
            target_scope = target.find_scope(RUNTIME_CLASSPATH)
        if target_scope is not None and target_scope.can_be_resolved:
            for child in target_scope.all_dependencies:
                node.add_child(self._resolve(child, scope, nodes, artifacts))

        return node


class ManifestScope(BuildScope):
    def __init__(self, name: str, project: "ManifestProject", can_be_resolved: bool = True) -> None:
        super().__init__(name, can_be_resolved)
        self.project = project

    def resolve(self) -> ResolvedScope:
        if not self.can_be_resolved:
            raise ResolutionError(f"Scope '{self.name}' cannot be resolved")
        logging.debug(f"Resolving {self.project.name}:{self.name}")
        return self.project.repository.resolve(self)


class ManifestProject(BuildProject):
    def __init__(self, name: str, repository: Repository, **kwargs) -> None:
        super().__init__(name, **kwargs)
        self.repository = repository
        self._detached = 0

    def create_scope(self, name: str) -> ManifestScope:
        if name in self.scopes:
            raise ValueError(f"Scope '{name}' already exists in project '{self.name}'")
        scope = ManifestScope(name, self)
        self.scopes[name] = scope
        return scope

    def detached_scope(self, dependencies: List[DeclaredDependency]) -> ManifestScope:
        self._detached += 1
        scope = ManifestScope(f"detachedScope{self._detached}", self)
        scope.dependencies = list(dependencies)
        return scope


def _parse_repository(table: Dict[str, Any]) -> Repository:
    components = {}
    for coordinate, entry in table.items():
        declared = parse_declared(coordinate)
        if declared.is_module:
            raise ConfigurationError(f"Repository entries must be components, got '{coordinate}'")
        entry = entry or {}
        components[declared.id] = Component(
            declared.group,
            declared.name,
            declared.version,
            dependencies=[parse_declared(d) for d in entry.get("dependencies", [])],
            variants={k: list(v) for k, v in entry.get("variants", {}).items()},
            file=entry.get("file"),
        )
    return Repository(components)


def _default_group(parent: Optional[BuildProject]) -> str:
    if parent is None:
        return ""
    if parent.group:
        return f"{parent.group}.{parent.name}"
    return parent.name


def _configure_scopes(project: ManifestProject, entry: Dict[str, Any]) -> None:
    extends: Dict[str, List[str]] = {}

    preset = SCOPE_PRESETS.get(project.kind)
    if preset is None:
        raise ConfigurationError(f"Unknown module kind '{project.kind}' for module '{project.name}'")

    for name, resolvable, parents, usage in preset:
        scope = project.create_scope(name)
        scope.can_be_resolved = resolvable
        if usage:
            scope.attributes[USAGE_ATTRIBUTE] = usage
        extends[name] = list(parents)

    for name, scope_entry in entry.get("scopes", {}).items():
        scope = project.find_scope(name) or project.create_scope(name)
        scope.can_be_resolved = scope_entry.get("resolvable", scope.can_be_resolved)
        scope.attributes.update(scope_entry.get("attributes", {}))
        extends.setdefault(name, []).extend(scope_entry.get("extends", []))

    for name, dependencies in entry.get("dependencies", {}).items():
        scope = project.find_scope(name) or project.create_scope(name)
        scope.dependencies.extend(parse_declared(d) for d in dependencies)

    for name, parents in extends.items():
        scope = project.scopes[name]
        for parent_name in parents:
            parent = project.find_scope(parent_name)
            if parent is None:
                raise ConfigurationError(f"Scope '{name}' of '{project.name}' extends unknown scope '{parent_name}'")
            scope.extends_from.append(parent)


def build_projects(data: Dict[str, Any], base_dir: Path) -> ManifestProject:
    """Builds the module tree described by a parsed manifest and returns its root."""
    repository = _parse_repository(data.get("repository", {}))

    entries = {}
    for entry in data.get("modules", []):
        name = entry.get("name")
        if not name:
            raise ConfigurationError("Every module needs a name")
        if name in entries:
            raise ConfigurationError(f"Duplicated module '{name}'")
        entries[name] = entry

    roots = [name for name, entry in entries.items() if not entry.get("parent")]
    if len(roots) != 1:
        raise ConfigurationError(f"Expected exactly one root module, found {len(roots)}")

    def create(name: str, trail: Tuple[str, ...] = ()) -> ManifestProject:
        if name in repository.projects:
            return repository.projects[name]
        if name in trail:
            raise ConfigurationError(f"Module parents form a loop: {' -> '.join(trail + (name,))}")

        entry = entries.get(name)
        if entry is None:
            raise ConfigurationError(f"Unknown parent module '{name}'")

        parent = create(entry["parent"], trail + (name,)) if entry.get("parent") else None
        default_path = base_dir if parent is None else parent.path / name
        project = ManifestProject(
            name,
            repository,
            group=entry.get("group", _default_group(parent)),
            version=entry.get("version", ""),
            path=base_dir / entry["path"] if "path" in entry else default_path,
            parent=parent,
            kind=entry.get("kind", "java"),
        )
        repository.projects[name] = project
        _configure_scopes(project, entry)
        return project

    for name in entries:
        create(name)

    logging.debug(f"Manifest loaded: {len(entries)} modules, {len(repository.components)} components.")
    return repository.projects[roots[0]]


def parse_manifest(text: str, base_dir: Path = Path(".")) -> ManifestProject:
    """Builds the module tree straight from manifest text."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid manifest: {e}")
    return build_projects(data, Path(base_dir))


def read_manifest(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"{path} not found.")
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid manifest {path}: {e}")


class ManifestProvider(ProjectProvider):
    @property
    def name(self) -> str:
        return "depscope manifest"

    @property
    def lock_files(self) -> List[str]:
        return [MANIFEST_FILE]

    def load(self, directory: Path) -> Tuple[ManifestProject, Dict[str, Any]]:
        directory = Path(directory)
        logging.debug(f"Reading {MANIFEST_FILE} from {directory}...")
        data = read_manifest(directory / MANIFEST_FILE)
        return build_projects(data, directory), data.get("audit", {})

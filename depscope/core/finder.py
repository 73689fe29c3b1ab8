import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from depscope.build.base import BuildProject
from depscope.core.model import Artifact, Dependency, Module, ResolvedArtifact, ResolvedDependency
from depscope.core.resolver import ScopeResolver
from depscope.core.scopes import COMPILE_ONLY_SCOPE_NAME, select_scopes
from depscope.core.serializer import serialize

UNSPECIFIED_VERSION = "unspecified"

# A scope whose name contains one of these wins a merge against one that does not
PRIORITY_MARKERS = ("runtime", "release")


def has_priority(scope_name: str) -> bool:
    name = scope_name.lower()
    return any(marker in name for marker in PRIORITY_MARKERS)


def module_id(project: BuildProject) -> str:
    parts = []
    if str(project.group).strip():
        parts.append(str(project.group))
    parts.append(project.name)
    version = str(project.version).strip()
    if version and version != UNSPECIFIED_VERSION:
        parts.append(version)
    return ":".join(parts)


def walk(roots: Iterable[ResolvedDependency]) -> Iterator[ResolvedDependency]:
    """Yields every node reachable from `roots` once, cycles included."""
    visited: Set[str] = set()
    pending = list(roots)
    while pending:
        node = pending.pop()
        if node.id in visited:
            continue
        visited.add(node.id)
        yield node
        pending.extend(node.children)


def reachable_ids(roots: Iterable[ResolvedDependency]) -> Set[str]:
    return {node.id for node in walk(roots)}


def _merge(selected: Dict[str, Tuple[str, object]], key: str, scope_name: str, value: object) -> None:
    current = selected.get(key)
    if current is None or (has_priority(scope_name) and not has_priority(current[0])):
        selected[key] = (scope_name, value)


class DependenciesFinder:
    """Aggregates the resolved scopes of every module of a project tree."""

    def __init__(self, resolver: Optional[ScopeResolver] = None) -> None:
        self.resolver = resolver or ScopeResolver()

    def find_resolved_dependencies(
        self,
        root: BuildProject,
        include_all: bool = False,
        variant_attributes: Optional[Dict[str, str]] = None,
        exclude_compile_only: bool = False,
    ) -> List[ResolvedDependency]:
        result: Dict[str, ResolvedDependency] = {}
        for project in root.all_projects():
            dependencies, _ = self._resolve_project(project, include_all, variant_attributes, exclude_compile_only)
            for dependency in dependencies:
                result.setdefault(dependency.id, dependency)
        return list(result.values())

    def find_resolved_artifacts(
        self,
        project: BuildProject,
        include_all: bool = False,
        variant_attributes: Optional[Dict[str, str]] = None,
        exclude_compile_only: bool = False,
    ) -> List[ResolvedArtifact]:
        _, artifacts = self._resolve_project(project, include_all, variant_attributes, exclude_compile_only)
        return artifacts

    def find_modules(
        self,
        root: BuildProject,
        include_all: bool = False,
        excluded_module_names: Iterable[str] = (),
        variant_attributes: Optional[Dict[str, str]] = None,
        exclude_compile_only: bool = False,
    ) -> List[Module]:
        excluded_module_names = set(excluded_module_names or ())
        modules = []

        for project in root.all_projects():
            if project.name in excluded_module_names:
                logging.debug(f"Module '{project.name}' excluded.")
                continue

            dependencies, artifacts = self._resolve_project(
                project, include_all, variant_attributes, exclude_compile_only
            )

            processed: Set[str] = set()
            tree = tuple(serialize(dependency, True, processed) for dependency in dependencies)
            consumed = tuple(Artifact(artifact.id, str(artifact.file)) for artifact in artifacts)

            modules.append(self.build_module(project, consumed, tree))

        return modules

    def build_module(
        self,
        project: BuildProject,
        consumed_artifacts: Tuple[Artifact, ...] = (),
        dependencies: Tuple[Dependency, ...] = (),
    ) -> Module:
        return Module(
            id=module_id(project),
            pathname=str(Path(project.path).absolute()),
            parent_id=module_id(project.parent) if project.parent is not None else None,
            consumed_artifacts=consumed_artifacts,
            dependencies=dependencies,
        )

    def _resolve_project(
        self,
        project: BuildProject,
        include_all: bool,
        variant_attributes: Optional[Dict[str, str]],
        exclude_compile_only: bool,
    ) -> Tuple[List[ResolvedDependency], List[ResolvedArtifact]]:
        selected_dependencies: Dict[str, Tuple[str, ResolvedDependency]] = {}
        selected_artifacts: Dict[str, Tuple[str, ResolvedArtifact]] = {}

        resolved_scopes = [
            (scope, self.resolver.resolve(project, scope, variant_attributes))
            for scope in select_scopes(project, include_all)
        ]

        compile_only = project.find_scope(COMPILE_ONLY_SCOPE_NAME) if exclude_compile_only else None
        excluded_ids: Set[str] = set()
        if compile_only is not None:
            declared_ids = {d.id for d in compile_only.dependencies if not d.is_module}
            for scope, resolved in resolved_scopes:
                if scope.extends(compile_only):
                    roots = [node for node in walk(resolved.first_level) if node.id in declared_ids]
                    excluded_ids |= reachable_ids(roots)
            if excluded_ids:
                logging.debug(f"{project.name}: excluding compile only dependencies {sorted(excluded_ids)}")

        for scope, resolved in resolved_scopes:
            first_level, artifacts = resolved.first_level, resolved.artifacts
            if excluded_ids:
                first_level, artifacts = exclude_dependencies(first_level, artifacts, excluded_ids)

            for dependency in first_level:
                _merge(selected_dependencies, dependency.id, scope.name, dependency)
            for artifact in artifacts:
                _merge(selected_artifacts, artifact.id, scope.name, artifact)

        logging.debug(
            f"{project.name}: {len(selected_dependencies)} direct dependencies, {len(selected_artifacts)} artifacts."
        )
        return (
            [dependency for _, dependency in selected_dependencies.values()],
            [artifact for _, artifact in selected_artifacts.values()],
        )


def prune(first_level: List[ResolvedDependency], excluded_ids: Set[str]) -> List[ResolvedDependency]:
    """Copies the graph under `first_level` leaving out the excluded nodes at every depth."""
    copies: Dict[str, ResolvedDependency] = {}

    def copy(node: ResolvedDependency) -> ResolvedDependency:
        if node.id in copies:
            return copies[node.id]
        clone = ResolvedDependency(node.group, node.name, node.version, node.scope)
        copies[node.id] = clone
        for child in node.children:
            if child.id not in excluded_ids:
                clone.add_child(copy(child))
        return clone

    return [copy(d) for d in first_level if d.id not in excluded_ids]


def exclude_dependencies(
    first_level: List[ResolvedDependency],
    artifacts: List[ResolvedArtifact],
    excluded_ids: Set[str],
) -> Tuple[List[ResolvedDependency], List[ResolvedArtifact]]:
    if not excluded_ids & reachable_ids(first_level):
        return first_level, artifacts
    return prune(first_level, excluded_ids), [a for a in artifacts if a.id not in excluded_ids]

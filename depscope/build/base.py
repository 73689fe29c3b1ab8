from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from depscope.core.model import ResolvedArtifact, ResolvedDependency
from depscope.core.variants import DisambiguationRule


@dataclass(frozen=True)
class DeclaredDependency:
    """A dependency as written in the build, either on a component or on another module."""

    group: str = ""
    name: str = ""
    version: str = ""
    project: Optional[str] = None

    @property
    def is_module(self) -> bool:
        return self.project is not None

    @property
    def id(self) -> str:
        if self.is_module:
            return f"project:{self.project}"
        return f"{self.group}:{self.name}:{self.version}"


@dataclass
class ResolvedScope:
    first_level: List[ResolvedDependency] = field(default_factory=list)
    artifacts: List[ResolvedArtifact] = field(default_factory=list)


class BuildScope(ABC):
    """Named bucket of declared dependencies belonging to a module."""

    def __init__(self, name: str, can_be_resolved: bool = True) -> None:
        self.name = name
        self.can_be_resolved = can_be_resolved
        self.extends_from: List["BuildScope"] = []
        self.attributes: Dict[str, str] = {}
        self.disambiguation_rules: Dict[str, DisambiguationRule] = {}
        self.dependencies: List[DeclaredDependency] = []

    def hierarchy(self) -> List["BuildScope"]:
        """This scope followed by every scope it extends, transitively."""
        seen: List[BuildScope] = []
        pending = [self]
        while pending:
            scope = pending.pop(0)
            if scope in seen:
                continue
            seen.append(scope)
            pending.extend(scope.extends_from)
        return seen

    def extends(self, other: "BuildScope") -> bool:
        return other is not self and other in self.hierarchy()

    @property
    def all_dependencies(self) -> List[DeclaredDependency]:
        result = []
        for scope in self.hierarchy():
            for dependency in scope.dependencies:
                if dependency not in result:
                    result.append(dependency)
        return result

    @abstractmethod
    def resolve(self) -> ResolvedScope:
        """Resolves the scope or raises ResolutionError."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class BuildProject(ABC):
    """One buildable unit in a module tree."""

    def __init__(
        self,
        name: str,
        group: str = "",
        version: str = "",
        path: Optional[Path] = None,
        parent: Optional["BuildProject"] = None,
        kind: str = "base",
    ) -> None:
        self.name = name
        self.group = group
        self.version = version
        self.path = path or Path(".")
        self.parent = parent
        self.kind = kind
        self.children: List["BuildProject"] = []
        self.scopes: Dict[str, BuildScope] = {}
        if parent is not None:
            parent.children.append(self)

    def all_projects(self) -> Iterator["BuildProject"]:
        """Parents before children, in declaration order."""
        yield self
        for child in self.children:
            yield from child.all_projects()

    def find_scope(self, name: str) -> Optional[BuildScope]:
        return self.scopes.get(name)

    @abstractmethod
    def create_scope(self, name: str) -> BuildScope:
        """Registers a new, empty, resolvable scope under a name that must be unused."""
        pass

    @abstractmethod
    def detached_scope(self, dependencies: List[DeclaredDependency]) -> BuildScope:
        """A resolvable scope that is not registered in `scopes`."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ProjectProvider(ABC):
    """Loads a module tree from a build description found in a directory."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def lock_files(self) -> List[str]:
        """Exact filenames this provider reads."""
        pass

    def detect(self, files: List[str]) -> bool:
        for lock_file in self.lock_files:
            if lock_file in files:
                return True
        return False

    @abstractmethod
    def load(self, directory: Path) -> Tuple[BuildProject, Dict]:
        """Returns the root project and the raw `[audit]` settings table."""
        pass

"""Turns the raw resolved graph into an acyclic presentation tree.

One "emitted" set is shared by every call that builds the same tree (all direct
dependencies of a module, for instance) and is passed in by the caller. The first
occurrence of a coordinate is expanded; later ones become childless references
flagged as repeated, except when the earlier occurrence is an ancestor of the
current node, in which case the edge closes a cycle and is dropped.
"""
from typing import Iterable, Iterator, Optional, Set

from depscope.core.model import Dependency, ResolvedDependency


def serialize(root: ResolvedDependency, is_direct: bool, processed: Optional[Set[str]] = None) -> Dependency:
    if processed is None:
        processed = set()
    processed.add(root.id)
    return _expand(root, is_direct, processed, set())


def _expand(node: ResolvedDependency, is_direct: bool, processed: Set[str], ancestors: Set[str]) -> Dependency:
    ancestors.add(node.id)

    children = []
    for child in node.children:
        if child.id not in processed:
            processed.add(child.id)
            children.append(_expand(child, False, processed, ancestors))
        elif child.id in ancestors:
            continue
        else:
            children.append(Dependency(child.id, False, repeated=True))

    ancestors.discard(node.id)
    return Dependency(node.id, is_direct, tuple(children))


def iter_tree(dependencies: Iterable[Dependency]) -> Iterator[Dependency]:
    """Pre-order walk over presentation trees."""
    for dependency in dependencies:
        yield dependency
        yield from iter_tree(dependency.children)

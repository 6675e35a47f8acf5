"""Resource navigation tree built from ``parent_id`` links.

The evaluator never uses this tree; it derives ancestry from the path
string.  The tree exists for navigation menus and for ``rbac tree``.
Resources whose parent id is not in the list are dropped, as they cannot
be placed.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from aumos_path_rbac.models import Resource


@dataclass
class ResourceNode:
    """A resource and its child nodes."""

    resource: Resource
    children: list[ResourceNode] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.resource.path

    def walk(self) -> Iterator[ResourceNode]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


def build_resource_tree(resources: Iterable[Resource]) -> list[ResourceNode]:
    """Build the navigation tree and return its root nodes in input order."""
    ordered = list(resources)
    nodes = {resource.id: ResourceNode(resource=resource) for resource in ordered}
    roots: list[ResourceNode] = []
    for resource in ordered:
        node = nodes[resource.id]
        if resource.parent_id is None:
            roots.append(node)
            continue
        parent = nodes.get(resource.parent_id)
        if parent is not None:
            parent.children.append(node)
    return roots

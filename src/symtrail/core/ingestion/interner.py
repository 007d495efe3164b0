"""Name interning and membership-chain construction.

Turns a :class:`NameHierarchy` into graph nodes: every prefix level
(``a``, ``a::b``, ``a::b::c``) becomes one node, consecutive levels are
linked with MEMBER edges, and the id of the innermost level is returned.
Recording the same hierarchy again reuses every node and adds no edges.
"""

from __future__ import annotations

from symtrail.core.graph.hierarchy import NameHierarchy
from symtrail.core.graph.model import Edge, EdgeType, Node, NodeType, Symbol, SymbolType
from symtrail.core.storage.base import StorageBackend

class SymbolInterner:
    """Session cache from serialized name to node id.

    The backend is the source of truth: a cache miss is resolved with a
    lookup by serialized name before anything is created, so reopening an
    existing database never duplicates nodes. Not thread-safe.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._cache: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, serialized_name: object) -> bool:
        return serialized_name in self._cache

    def clear(self) -> None:
        self._cache.clear()

    def intern(self, serialized_name: str, node_type: NodeType) -> tuple[int, bool]:
        """Return ``(node_id, created)`` for *serialized_name*.

        A new node is tagged *node_type*; an existing node keeps its type.
        """
        node_id = self._cache.get(serialized_name)
        if node_id is not None:
            return node_id, False

        existing = self._backend.get_node_by_name(serialized_name)
        if existing is not None:
            self._cache[serialized_name] = existing.id
            return existing.id, False

        node_id = self._backend.allocate_element()
        self._backend.add_node(Node(id=node_id, type=node_type, serialized_name=serialized_name))
        self._cache[serialized_name] = node_id
        return node_id, True

class SymbolGraphBuilder:
    """Builds node chains for name hierarchies and narrows their kinds."""

    def __init__(self, backend: StorageBackend, interner: SymbolInterner) -> None:
        self._backend = backend
        self._interner = interner

    def record_symbol(self, hierarchy: NameHierarchy) -> int:
        """Intern every level of *hierarchy* and return the innermost node id.

        A MEMBER edge ``parent -> child`` is written whenever the child level
        is created by this call. A child's parent is fixed by its name prefix,
        so an existing child already carries its edge.
        """
        parent_id: int | None = None
        for end in range(1, hierarchy.size() + 1):
            node_id, created = self._interner.intern(
                hierarchy.serialize_range(0, end), NodeType.SYMBOL
            )
            if created and parent_id is not None:
                self.record_edge(parent_id, node_id, EdgeType.MEMBER)
            parent_id = node_id
        assert parent_id is not None
        return parent_id

    def record_edge(self, source_id: int, target_id: int, edge_type: EdgeType) -> int:
        """Write a new edge element and return its id."""
        edge_id = self._backend.allocate_element()
        self._backend.add_edge(
            Edge(id=edge_id, type=edge_type, source_id=source_id, target_id=target_id)
        )
        return edge_id

    def record_symbol_kind(self, node_id: int, node_type: NodeType) -> None:
        """Overwrite the type of *node_id*; unknown ids are ignored."""
        node = self._backend.get_node(node_id)
        if node is not None and node.type != node_type:
            node.type = node_type
            self._backend.update_node(node)

    def record_definition_kind(self, node_id: int, kind: SymbolType) -> None:
        """Insert or update the symbol definition row of *node_id*."""
        symbol = self._backend.get_symbol(node_id)
        if symbol is None:
            self._backend.add_symbol(Symbol(id=node_id, definition_kind=kind))
        elif symbol.definition_kind != kind:
            symbol.definition_kind = kind
            self._backend.update_symbol(symbol)

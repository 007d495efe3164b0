"""In-memory storage backend for symtrail.

Provides a dict-backed store with O(1) lookups by id and by serialized
name. It enforces the same referential rules as the SQLite schema's
foreign keys, so code exercised against it behaves like it would against
the on-disk format. Used by the test-suite and by indexers that only need
a throw-away graph.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from pathlib import Path

from symtrail.core.graph.model import (
    ComponentAccess,
    Edge,
    ElementComponent,
    ErrorRecord,
    File,
    FileContent,
    LocalSymbol,
    Node,
    Occurrence,
    SourceLocation,
    Symbol,
)
from symtrail.errors import BackendError

logger = logging.getLogger(__name__)

class MemoryBackend:
    """StorageBackend implementation holding every record in process memory.

    Rows are copied on the way in and out so callers can never mutate the
    stored state behind the backend's back.
    """

    def __init__(self) -> None:
        self._next_element = 1
        self._next_location = 1
        self._next_component = 1

        self._elements: set[int] = set()
        self._nodes: dict[int, Node] = {}
        self._symbols: dict[int, Symbol] = {}
        self._edges: dict[int, Edge] = {}
        self._files: dict[int, File] = {}
        self._contents: dict[int, FileContent] = {}
        self._local_symbols: dict[int, LocalSymbol] = {}
        self._locations: dict[int, SourceLocation] = {}
        self._occurrences: dict[tuple[int, int], Occurrence] = {}
        self._errors: dict[int, ErrorRecord] = {}
        self._components: dict[int, ElementComponent] = {}
        self._access: dict[int, ComponentAccess] = {}
        self._meta: dict[str, str] = {}

        # Secondary indexes, kept in sync by the add/update methods.
        self._by_name: dict[str, int] = {}
        self._local_by_name: dict[str, int] = {}
        self._outgoing: dict[int, set[int]] = defaultdict(set)

    def initialize(self, path: Path | None = None) -> None:
        """No-op; the store lives only as long as this object."""
        logger.debug("Initialised in-memory backend")

    def close(self) -> None:
        pass

    def create_tables(self) -> None:
        pass

    def drop_tables(self) -> None:
        self.clear()
        self._meta.clear()

    def clear(self) -> None:
        """Drop every record, keeping metadata and the id counters."""
        for table in (
            self._elements,
            self._nodes,
            self._symbols,
            self._edges,
            self._files,
            self._contents,
            self._local_symbols,
            self._locations,
            self._occurrences,
            self._errors,
            self._components,
            self._access,
            self._by_name,
            self._local_by_name,
            self._outgoing,
        ):
            table.clear()

    def allocate_element(self) -> int:
        element_id = self._next_element
        self._next_element += 1
        self._elements.add(element_id)
        return element_id

    def has_element(self, element_id: int) -> bool:
        return element_id in self._elements

    def add_node(self, node: Node) -> None:
        self._require_element(node.id, "node")
        self._require_absent(self._nodes, node.id, "node")
        self._nodes[node.id] = dataclasses.replace(node)
        self._by_name.setdefault(node.serialized_name, node.id)

    def get_node(self, node_id: int) -> Node | None:
        return _copy(self._nodes.get(node_id))

    def get_node_by_name(self, serialized_name: str) -> Node | None:
        node_id = self._by_name.get(serialized_name)
        if node_id is None:
            return None
        return self.get_node(node_id)

    def update_node(self, node: Node) -> None:
        old = self._nodes.get(node.id)
        if old is None:
            return
        if old.serialized_name != node.serialized_name:
            if self._by_name.get(old.serialized_name) == node.id:
                del self._by_name[old.serialized_name]
            self._by_name.setdefault(node.serialized_name, node.id)
        self._nodes[node.id] = dataclasses.replace(node)

    def list_nodes(self) -> list[Node]:
        return [dataclasses.replace(n) for n in self._nodes.values()]

    def add_symbol(self, symbol: Symbol) -> None:
        self._require_node(symbol.id, "symbol")
        self._require_absent(self._symbols, symbol.id, "symbol")
        self._symbols[symbol.id] = dataclasses.replace(symbol)

    def get_symbol(self, symbol_id: int) -> Symbol | None:
        return _copy(self._symbols.get(symbol_id))

    def update_symbol(self, symbol: Symbol) -> None:
        if symbol.id in self._symbols:
            self._symbols[symbol.id] = dataclasses.replace(symbol)

    def add_edge(self, edge: Edge) -> None:
        self._require_element(edge.id, "edge")
        self._require_absent(self._edges, edge.id, "edge")
        self._require_node(edge.source_id, "edge")
        self._require_node(edge.target_id, "edge")
        self._edges[edge.id] = dataclasses.replace(edge)
        self._outgoing[edge.source_id].add(edge.id)

    def get_edge(self, edge_id: int) -> Edge | None:
        return _copy(self._edges.get(edge_id))

    def list_edges(self) -> list[Edge]:
        return [dataclasses.replace(e) for e in self._edges.values()]

    def get_outgoing(self, node_id: int) -> list[Edge]:
        """Return edges whose source is *node_id*, in insertion order of ids."""
        edge_ids = sorted(self._outgoing.get(node_id, ()))
        return [dataclasses.replace(self._edges[eid]) for eid in edge_ids]

    def add_source_location(self, location: SourceLocation) -> int:
        self._require_node(location.file_node_id, "source_location")
        location_id = self._next_location
        self._next_location += 1
        self._locations[location_id] = dataclasses.replace(location, id=location_id)
        return location_id

    def get_source_location(self, location_id: int) -> SourceLocation | None:
        return _copy(self._locations.get(location_id))

    def list_source_locations(self) -> list[SourceLocation]:
        return [dataclasses.replace(loc) for loc in self._locations.values()]

    def add_occurrence(self, occurrence: Occurrence) -> None:
        self._require_element(occurrence.element_id, "occurrence")
        if occurrence.source_location_id not in self._locations:
            raise BackendError(
                f"source location {occurrence.source_location_id} does not exist",
                operation="occurrence",
            )
        key = (occurrence.element_id, occurrence.source_location_id)
        self._require_absent(self._occurrences, key, "occurrence")
        self._occurrences[key] = dataclasses.replace(occurrence)

    def list_occurrences(self) -> list[Occurrence]:
        return [dataclasses.replace(o) for o in self._occurrences.values()]

    def add_file(self, file: File) -> None:
        self._require_node(file.id, "file")
        self._require_absent(self._files, file.id, "file")
        self._files[file.id] = dataclasses.replace(file)

    def get_file(self, file_id: int) -> File | None:
        return _copy(self._files.get(file_id))

    def update_file(self, file: File) -> None:
        if file.id in self._files:
            self._files[file.id] = dataclasses.replace(file)

    def list_files(self) -> list[File]:
        return [dataclasses.replace(f) for f in self._files.values()]

    def add_file_content(self, content: FileContent) -> None:
        if content.id not in self._files:
            raise BackendError(f"file {content.id} does not exist", operation="filecontent")
        self._require_absent(self._contents, content.id, "filecontent")
        self._contents[content.id] = dataclasses.replace(content)

    def get_file_content(self, file_id: int) -> FileContent | None:
        return _copy(self._contents.get(file_id))

    def update_file_content(self, content: FileContent) -> None:
        if content.id in self._contents:
            self._contents[content.id] = dataclasses.replace(content)

    def add_local_symbol(self, symbol: LocalSymbol) -> None:
        self._require_element(symbol.id, "local_symbol")
        self._require_absent(self._local_symbols, symbol.id, "local_symbol")
        self._local_symbols[symbol.id] = dataclasses.replace(symbol)
        self._local_by_name.setdefault(symbol.name, symbol.id)

    def get_local_symbol_by_name(self, name: str) -> LocalSymbol | None:
        symbol_id = self._local_by_name.get(name)
        if symbol_id is None:
            return None
        return _copy(self._local_symbols.get(symbol_id))

    def add_error(self, error: ErrorRecord) -> None:
        self._require_element(error.id, "error")
        self._require_absent(self._errors, error.id, "error")
        self._errors[error.id] = dataclasses.replace(error)

    def list_errors(self) -> list[ErrorRecord]:
        return [dataclasses.replace(e) for e in self._errors.values()]

    def add_element_component(self, component: ElementComponent) -> int:
        self._require_element(component.element_id, "element_component")
        component_id = self._next_component
        self._next_component += 1
        self._components[component_id] = dataclasses.replace(component, id=component_id)
        return component_id

    def list_element_components(self) -> list[ElementComponent]:
        return [dataclasses.replace(c) for c in self._components.values()]

    def set_component_access(self, access: ComponentAccess) -> None:
        self._require_node(access.node_id, "component_access")
        self._access[access.node_id] = dataclasses.replace(access)

    def get_component_access(self, node_id: int) -> ComponentAccess | None:
        return _copy(self._access.get(node_id))

    def set_meta(self, key: str, value: str) -> None:
        self._meta[key] = value

    def get_meta(self, key: str) -> str | None:
        return self._meta.get(key)

    def stats(self) -> dict[str, int]:
        return {
            "elements": len(self._elements),
            "nodes": len(self._nodes),
            "edges": len(self._edges),
            "symbols": len(self._symbols),
            "files": len(self._files),
            "source_locations": len(self._locations),
            "occurrences": len(self._occurrences),
            "local_symbols": len(self._local_symbols),
            "errors": len(self._errors),
        }

    def _require_element(self, element_id: int, operation: str) -> None:
        if element_id not in self._elements:
            raise BackendError(f"element {element_id} does not exist", operation=operation)

    def _require_node(self, node_id: int, operation: str) -> None:
        if node_id not in self._nodes:
            raise BackendError(f"node {node_id} does not exist", operation=operation)

    @staticmethod
    def _require_absent(table: dict, key: object, operation: str) -> None:
        if key in table:
            raise BackendError(f"duplicate {operation} key {key!r}", operation=operation)

def _copy(record):
    """Return a shallow copy of a record dataclass, passing ``None`` through."""
    return None if record is None else dataclasses.replace(record)

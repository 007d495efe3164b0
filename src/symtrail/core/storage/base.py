"""Storage backend abstraction for symtrail.

Defines the :class:`StorageBackend` protocol that every concrete store
(SQLite, KuzuDB, in-memory) must satisfy. The recording core talks to
persistence exclusively through this contract. Implementations raise
:class:`~symtrail.errors.BackendError` for any rejected operation and
return ``None`` from ``get_*`` lookups that find nothing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

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

# Table names reported by ``stats()``; shared so every backend counts alike.
STAT_KEYS: tuple[str, ...] = (
    "elements",
    "nodes",
    "edges",
    "symbols",
    "files",
    "source_locations",
    "occurrences",
    "local_symbols",
    "errors",
)

@runtime_checkable
class StorageBackend(Protocol):
    """Protocol that every symtrail storage backend must implement.

    Covers the lifecycle of the store (open, schema, clear, close), id
    allocation, and create / read / update of each record type.
    """

    def initialize(self, path: Path | None) -> None:
        """Open or create the backing store at *path*."""
        ...

    def close(self) -> None:
        """Release resources held by the backend."""
        ...

    def create_tables(self) -> None:
        """Create every table if missing. Safe to call repeatedly."""
        ...

    def drop_tables(self) -> None:
        """Drop every table if present. Safe to call repeatedly."""
        ...

    def clear(self) -> None:
        """Delete all rows from every record table, keeping the schema and meta."""
        ...

    def allocate_element(self) -> int:
        """Return a fresh element id shared by nodes, edges, errors and local symbols."""
        ...

    def has_element(self, element_id: int) -> bool:
        """Return True if *element_id* was allocated and not cleared."""
        ...

    def add_node(self, node: Node) -> None:
        ...

    def get_node(self, node_id: int) -> Node | None:
        ...

    def get_node_by_name(self, serialized_name: str) -> Node | None:
        """Return the node whose ``serialized_name`` matches exactly."""
        ...

    def update_node(self, node: Node) -> None:
        ...

    def list_nodes(self) -> list[Node]:
        ...

    def add_symbol(self, symbol: Symbol) -> None:
        ...

    def get_symbol(self, symbol_id: int) -> Symbol | None:
        ...

    def update_symbol(self, symbol: Symbol) -> None:
        ...

    def add_edge(self, edge: Edge) -> None:
        ...

    def get_edge(self, edge_id: int) -> Edge | None:
        ...

    def list_edges(self) -> list[Edge]:
        ...

    def add_source_location(self, location: SourceLocation) -> int:
        """Insert *location*, ignoring its ``id``, and return the assigned id."""
        ...

    def get_source_location(self, location_id: int) -> SourceLocation | None:
        ...

    def list_source_locations(self) -> list[SourceLocation]:
        ...

    def add_occurrence(self, occurrence: Occurrence) -> None:
        ...

    def list_occurrences(self) -> list[Occurrence]:
        ...

    def add_file(self, file: File) -> None:
        ...

    def get_file(self, file_id: int) -> File | None:
        ...

    def update_file(self, file: File) -> None:
        ...

    def list_files(self) -> list[File]:
        ...

    def add_file_content(self, content: FileContent) -> None:
        ...

    def get_file_content(self, file_id: int) -> FileContent | None:
        ...

    def update_file_content(self, content: FileContent) -> None:
        ...

    def add_local_symbol(self, symbol: LocalSymbol) -> None:
        ...

    def get_local_symbol_by_name(self, name: str) -> LocalSymbol | None:
        ...

    def add_error(self, error: ErrorRecord) -> None:
        ...

    def list_errors(self) -> list[ErrorRecord]:
        ...

    def add_element_component(self, component: ElementComponent) -> int:
        """Insert *component*, ignoring its ``id``, and return the assigned id."""
        ...

    def list_element_components(self) -> list[ElementComponent]:
        ...

    def set_component_access(self, access: ComponentAccess) -> None:
        """Insert or replace the access specifier of ``access.node_id``."""
        ...

    def get_component_access(self, node_id: int) -> ComponentAccess | None:
        ...

    def set_meta(self, key: str, value: str) -> None:
        """Insert or replace a metadata entry."""
        ...

    def get_meta(self, key: str) -> str | None:
        ...

    def stats(self) -> dict[str, int]:
        """Return row counts keyed by :data:`STAT_KEYS`."""
        ...

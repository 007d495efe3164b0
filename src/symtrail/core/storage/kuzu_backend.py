"""KuzuDB storage backend for symtrail.

Implements the :class:`StorageBackend` protocol on KuzuDB, an embedded
graph database that speaks Cypher. Every record kind gets its own node
table keyed by ``id``; graph edges and occurrences are stored as real
relationships, so the symbol graph can be traversed with plain Cypher::

    MATCH (a:SymbolNode)-[e:SymbolEdge]->(b:SymbolNode) RETURN a, e, b
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import kuzu

from symtrail.core.graph.model import (
    ComponentAccess,
    ComponentAccessType,
    Edge,
    EdgeType,
    ElementComponent,
    ElementComponentType,
    ErrorRecord,
    File,
    FileContent,
    LocalSymbol,
    Node,
    NodeType,
    Occurrence,
    SourceLocation,
    SourceLocationType,
    Symbol,
    SymbolType,
    decode_enum,
    format_modification_time,
    parse_modification_time,
)
from symtrail.errors import BackendError

logger = logging.getLogger(__name__)

_NODE_TABLES: dict[str, str] = {
    "Element": "id INT64, PRIMARY KEY (id)",
    "SymbolNode": "id INT64, type INT64, serialized_name STRING, PRIMARY KEY (id)",
    "SymbolDefinition": "id INT64, definition_kind INT64, PRIMARY KEY (id)",
    "SourceFile": (
        "id INT64, path STRING, language STRING, modification_time STRING, "
        "indexed BOOL, complete BOOL, line_count INT64, PRIMARY KEY (id)"
    ),
    "FileContent": "id INT64, content STRING, PRIMARY KEY (id)",
    "LocalSymbol": "id INT64, name STRING, PRIMARY KEY (id)",
    "SourceLocation": (
        "id INT64, file_node_id INT64, start_line INT64, start_column INT64, "
        "end_line INT64, end_column INT64, type INT64, PRIMARY KEY (id)"
    ),
    "IndexerError": (
        "id INT64, message STRING, fatal BOOL, indexed BOOL, "
        "translation_unit STRING, PRIMARY KEY (id)"
    ),
    "ElementComponent": "id INT64, element_id INT64, type INT64, data STRING, PRIMARY KEY (id)",
    "ComponentAccess": "node_id INT64, type INT64, PRIMARY KEY (node_id)",
    "MetaEntry": "key STRING, value STRING, PRIMARY KEY (key)",
}

_REL_TABLES: dict[str, str] = {
    "SymbolEdge": "FROM SymbolNode TO SymbolNode, id INT64, type INT64",
    "OccursAt": "FROM Element TO SourceLocation",
}

# Tables emptied by ``clear``; relationships go with their endpoints.
_CLEARED_TABLES: list[str] = [name for name in _NODE_TABLES if name != "MetaEntry"]

_STAT_TABLES: dict[str, str] = {
    "elements": "Element",
    "nodes": "SymbolNode",
    "symbols": "SymbolDefinition",
    "files": "SourceFile",
    "source_locations": "SourceLocation",
    "local_symbols": "LocalSymbol",
    "errors": "IndexerError",
}

_LOCATION_COLUMNS = (
    "l.id, l.file_node_id, l.start_line, l.start_column, l.end_line, l.end_column, l.type"
)
_FILE_COLUMNS = (
    "f.id, f.path, f.language, f.modification_time, f.indexed, f.complete, f.line_count"
)

class KuzuBackend:
    """StorageBackend implementation backed by KuzuDB.

    Usage::

        backend = KuzuBackend()
        backend.initialize(Path("/tmp/symbols_kuzu"))
        backend.create_tables()
        node = backend.get_node(42)
        backend.close()

    KuzuDB has no auto-increment columns, so element and source location
    ids are derived from the current maximum. Ids therefore stay monotonic
    for the lifetime of the data, which is all the recording core relies on.
    """

    def __init__(self) -> None:
        self._db: kuzu.Database | None = None
        self._conn: kuzu.Connection | None = None

    def initialize(self, path: Path | None, *, read_only: bool = False) -> None:
        """Open or create the KuzuDB database at *path*.

        Args:
            path: Filesystem path of the database; ``None`` opens an
                in-memory database.
            read_only: If ``True``, open without taking the write lock.
        """
        target = ":memory:" if path is None else str(path)
        try:
            self._db = kuzu.Database(target, read_only=read_only)
            self._conn = kuzu.Connection(self._db)
        except RuntimeError as exc:
            raise BackendError(f"cannot open {target}: {exc}", operation="open") from exc
        logger.debug("Opened KuzuDB database at %s", target)

    def close(self) -> None:
        """Release the connection and database handles so file locks are dropped."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._db is not None:
            self._db.close()
            self._db = None

    def create_tables(self) -> None:
        for table, columns in _NODE_TABLES.items():
            self._execute(f"CREATE NODE TABLE IF NOT EXISTS {table}({columns})")
        for table, columns in _REL_TABLES.items():
            self._execute(f"CREATE REL TABLE IF NOT EXISTS {table}({columns})")

    def drop_tables(self) -> None:
        existing = {row[0] for row in self._rows("CALL show_tables() RETURN name")}
        # Relationship tables must go before the node tables they connect.
        for table in [*_REL_TABLES, *_NODE_TABLES]:
            if table in existing:
                self._execute(f"DROP TABLE {table}")

    def clear(self) -> None:
        for table in _CLEARED_TABLES:
            self._execute(f"MATCH (n:{table}) DETACH DELETE n")
        logger.debug("Cleared %d tables", len(_CLEARED_TABLES))

    def allocate_element(self) -> int:
        element_id = self._next_id("Element")
        self._execute("CREATE (:Element {id: $id})", {"id": element_id})
        return element_id

    def has_element(self, element_id: int) -> bool:
        rows = self._rows(
            "MATCH (n:Element) WHERE n.id = $id RETURN count(n)", {"id": element_id}
        )
        return bool(rows and rows[0][0])

    def add_node(self, node: Node) -> None:
        self._require("Element", node.id, "node")
        self._execute(
            "CREATE (:SymbolNode {id: $id, type: $type, serialized_name: $name})",
            {"id": node.id, "type": int(node.type), "name": node.serialized_name},
        )

    def get_node(self, node_id: int) -> Node | None:
        rows = self._rows(
            "MATCH (n:SymbolNode) WHERE n.id = $id RETURN n.id, n.type, n.serialized_name",
            {"id": node_id},
        )
        return _row_to_node(rows[0]) if rows else None

    def get_node_by_name(self, serialized_name: str) -> Node | None:
        rows = self._rows(
            "MATCH (n:SymbolNode) WHERE n.serialized_name = $name "
            "RETURN n.id, n.type, n.serialized_name ORDER BY n.id LIMIT 1",
            {"name": serialized_name},
        )
        return _row_to_node(rows[0]) if rows else None

    def update_node(self, node: Node) -> None:
        self._execute(
            "MATCH (n:SymbolNode) WHERE n.id = $id SET n.type = $type, n.serialized_name = $name",
            {"id": node.id, "type": int(node.type), "name": node.serialized_name},
        )

    def list_nodes(self) -> list[Node]:
        rows = self._rows(
            "MATCH (n:SymbolNode) RETURN n.id, n.type, n.serialized_name ORDER BY n.id"
        )
        return [_row_to_node(row) for row in rows]

    def add_symbol(self, symbol: Symbol) -> None:
        self._require("SymbolNode", symbol.id, "symbol")
        self._execute(
            "CREATE (:SymbolDefinition {id: $id, definition_kind: $kind})",
            {"id": symbol.id, "kind": int(symbol.definition_kind)},
        )

    def get_symbol(self, symbol_id: int) -> Symbol | None:
        rows = self._rows(
            "MATCH (s:SymbolDefinition) WHERE s.id = $id RETURN s.id, s.definition_kind",
            {"id": symbol_id},
        )
        if not rows:
            return None
        return Symbol(id=rows[0][0], definition_kind=decode_enum(SymbolType, rows[0][1]))

    def update_symbol(self, symbol: Symbol) -> None:
        self._execute(
            "MATCH (s:SymbolDefinition) WHERE s.id = $id SET s.definition_kind = $kind",
            {"id": symbol.id, "kind": int(symbol.definition_kind)},
        )

    def add_edge(self, edge: Edge) -> None:
        """MATCH both endpoints, then CREATE the relationship between them."""
        self._require("Element", edge.id, "edge")
        if self.get_edge(edge.id) is not None:
            raise BackendError(f"duplicate edge key {edge.id}", operation="edge")
        rows = self._rows(
            "MATCH (a:SymbolNode), (b:SymbolNode) WHERE a.id = $src AND b.id = $dst "
            "CREATE (a)-[e:SymbolEdge {id: $id, type: $type}]->(b) RETURN e.id",
            {
                "src": edge.source_id,
                "dst": edge.target_id,
                "id": edge.id,
                "type": int(edge.type),
            },
        )
        if not rows:
            raise BackendError(
                f"edge endpoints {edge.source_id} -> {edge.target_id} do not exist",
                operation="edge",
            )

    def get_edge(self, edge_id: int) -> Edge | None:
        rows = self._rows(
            "MATCH (a:SymbolNode)-[e:SymbolEdge]->(b:SymbolNode) WHERE e.id = $id "
            "RETURN e.id, e.type, a.id, b.id",
            {"id": edge_id},
        )
        return _row_to_edge(rows[0]) if rows else None

    def list_edges(self) -> list[Edge]:
        rows = self._rows(
            "MATCH (a:SymbolNode)-[e:SymbolEdge]->(b:SymbolNode) "
            "RETURN e.id, e.type, a.id, b.id ORDER BY e.id"
        )
        return [_row_to_edge(row) for row in rows]

    def add_source_location(self, location: SourceLocation) -> int:
        self._require("SymbolNode", location.file_node_id, "source_location")
        location_id = self._next_id("SourceLocation")
        self._execute(
            "CREATE (:SourceLocation {id: $id, file_node_id: $file, start_line: $sl, "
            "start_column: $sc, end_line: $el, end_column: $ec, type: $type})",
            {
                "id": location_id,
                "file": location.file_node_id,
                "sl": location.start_line,
                "sc": location.start_column,
                "el": location.end_line,
                "ec": location.end_column,
                "type": int(location.type),
            },
        )
        return location_id

    def get_source_location(self, location_id: int) -> SourceLocation | None:
        rows = self._rows(
            f"MATCH (l:SourceLocation) WHERE l.id = $id RETURN {_LOCATION_COLUMNS}",
            {"id": location_id},
        )
        return _row_to_location(rows[0]) if rows else None

    def list_source_locations(self) -> list[SourceLocation]:
        rows = self._rows(
            f"MATCH (l:SourceLocation) RETURN {_LOCATION_COLUMNS} ORDER BY l.id"
        )
        return [_row_to_location(row) for row in rows]

    def add_occurrence(self, occurrence: Occurrence) -> None:
        params = {"eid": occurrence.element_id, "lid": occurrence.source_location_id}
        existing = self._rows(
            "MATCH (e:Element)-[:OccursAt]->(l:SourceLocation) "
            "WHERE e.id = $eid AND l.id = $lid RETURN count(*)",
            params,
        )
        if existing and existing[0][0]:
            raise BackendError(
                f"duplicate occurrence key {(occurrence.element_id, occurrence.source_location_id)}",
                operation="occurrence",
            )
        rows = self._rows(
            "MATCH (e:Element), (l:SourceLocation) WHERE e.id = $eid AND l.id = $lid "
            "CREATE (e)-[:OccursAt]->(l) RETURN e.id",
            params,
        )
        if not rows:
            raise BackendError(
                f"occurrence endpoints {occurrence.element_id} -> "
                f"{occurrence.source_location_id} do not exist",
                operation="occurrence",
            )

    def list_occurrences(self) -> list[Occurrence]:
        rows = self._rows(
            "MATCH (e:Element)-[:OccursAt]->(l:SourceLocation) "
            "RETURN e.id, l.id ORDER BY l.id, e.id"
        )
        return [Occurrence(element_id=row[0], source_location_id=row[1]) for row in rows]

    def add_file(self, file: File) -> None:
        self._require("SymbolNode", file.id, "file")
        self._execute(
            "CREATE (:SourceFile {id: $id, path: $path, language: $language, "
            "modification_time: $mtime, indexed: $indexed, complete: $complete, "
            "line_count: $lines})",
            _file_params(file),
        )

    def get_file(self, file_id: int) -> File | None:
        rows = self._rows(
            f"MATCH (f:SourceFile) WHERE f.id = $id RETURN {_FILE_COLUMNS}", {"id": file_id}
        )
        return _row_to_file(rows[0]) if rows else None

    def update_file(self, file: File) -> None:
        self._execute(
            "MATCH (f:SourceFile) WHERE f.id = $id SET f.path = $path, "
            "f.language = $language, f.modification_time = $mtime, f.indexed = $indexed, "
            "f.complete = $complete, f.line_count = $lines",
            _file_params(file),
        )

    def list_files(self) -> list[File]:
        rows = self._rows(f"MATCH (f:SourceFile) RETURN {_FILE_COLUMNS} ORDER BY f.id")
        return [_row_to_file(row) for row in rows]

    def add_file_content(self, content: FileContent) -> None:
        self._require("SourceFile", content.id, "filecontent")
        self._execute(
            "CREATE (:FileContent {id: $id, content: $content})",
            {"id": content.id, "content": content.content},
        )

    def get_file_content(self, file_id: int) -> FileContent | None:
        rows = self._rows(
            "MATCH (c:FileContent) WHERE c.id = $id RETURN c.id, c.content", {"id": file_id}
        )
        return FileContent(id=rows[0][0], content=rows[0][1] or "") if rows else None

    def update_file_content(self, content: FileContent) -> None:
        self._execute(
            "MATCH (c:FileContent) WHERE c.id = $id SET c.content = $content",
            {"id": content.id, "content": content.content},
        )

    def add_local_symbol(self, symbol: LocalSymbol) -> None:
        self._require("Element", symbol.id, "local_symbol")
        self._execute(
            "CREATE (:LocalSymbol {id: $id, name: $name})", {"id": symbol.id, "name": symbol.name}
        )

    def get_local_symbol_by_name(self, name: str) -> LocalSymbol | None:
        rows = self._rows(
            "MATCH (s:LocalSymbol) WHERE s.name = $name RETURN s.id, s.name "
            "ORDER BY s.id LIMIT 1",
            {"name": name},
        )
        return LocalSymbol(id=rows[0][0], name=rows[0][1]) if rows else None

    def add_error(self, error: ErrorRecord) -> None:
        self._require("Element", error.id, "error")
        self._execute(
            "CREATE (:IndexerError {id: $id, message: $message, fatal: $fatal, "
            "indexed: $indexed, translation_unit: $tu})",
            {
                "id": error.id,
                "message": error.message,
                "fatal": error.fatal,
                "indexed": error.indexed,
                "tu": error.translation_unit,
            },
        )

    def list_errors(self) -> list[ErrorRecord]:
        rows = self._rows(
            "MATCH (e:IndexerError) RETURN e.id, e.message, e.fatal, e.indexed, "
            "e.translation_unit ORDER BY e.id"
        )
        return [
            ErrorRecord(
                id=row[0],
                message=row[1] or "",
                fatal=bool(row[2]),
                indexed=bool(row[3]),
                translation_unit=row[4] or "",
            )
            for row in rows
        ]

    def add_element_component(self, component: ElementComponent) -> int:
        self._require("Element", component.element_id, "element_component")
        component_id = self._next_id("ElementComponent")
        self._execute(
            "CREATE (:ElementComponent {id: $id, element_id: $eid, type: $type, data: $data})",
            {
                "id": component_id,
                "eid": component.element_id,
                "type": int(component.type),
                "data": component.data,
            },
        )
        return component_id

    def list_element_components(self) -> list[ElementComponent]:
        rows = self._rows(
            "MATCH (c:ElementComponent) RETURN c.id, c.element_id, c.type, c.data ORDER BY c.id"
        )
        return [
            ElementComponent(
                id=row[0],
                element_id=row[1],
                type=decode_enum(ElementComponentType, row[2]),
                data=row[3] or "",
            )
            for row in rows
        ]

    def set_component_access(self, access: ComponentAccess) -> None:
        self._require("SymbolNode", access.node_id, "component_access")
        self._execute(
            "MERGE (a:ComponentAccess {node_id: $id}) SET a.type = $type",
            {"id": access.node_id, "type": int(access.type)},
        )

    def get_component_access(self, node_id: int) -> ComponentAccess | None:
        rows = self._rows(
            "MATCH (a:ComponentAccess) WHERE a.node_id = $id RETURN a.node_id, a.type",
            {"id": node_id},
        )
        if not rows:
            return None
        return ComponentAccess(
            node_id=rows[0][0], type=decode_enum(ComponentAccessType, rows[0][1])
        )

    def set_meta(self, key: str, value: str) -> None:
        self._execute(
            "MERGE (m:MetaEntry {key: $key}) SET m.value = $value", {"key": key, "value": value}
        )

    def get_meta(self, key: str) -> str | None:
        rows = self._rows("MATCH (m:MetaEntry) WHERE m.key = $key RETURN m.value", {"key": key})
        return rows[0][0] if rows else None

    def stats(self) -> dict[str, int]:
        counts = {
            key: self._count(f"MATCH (n:{table}) RETURN count(n)")
            for key, table in _STAT_TABLES.items()
        }
        counts["edges"] = self._count("MATCH ()-[e:SymbolEdge]->() RETURN count(e)")
        counts["occurrences"] = self._count("MATCH ()-[o:OccursAt]->() RETURN count(o)")
        return counts

    def execute_raw(self, query: str) -> list[list[Any]]:
        """Execute a raw Cypher query and return all result rows."""
        return self._rows(query)

    def _execute(self, query: str, parameters: dict[str, Any] | None = None) -> Any:
        assert self._conn is not None
        try:
            return self._conn.execute(query, parameters=parameters or {})
        except RuntimeError as exc:
            raise BackendError(f"{exc} (while executing {query!r})", operation=query) from exc

    def _rows(self, query: str, parameters: dict[str, Any] | None = None) -> list[list[Any]]:
        result = self._execute(query, parameters)
        rows: list[list[Any]] = []
        while result.has_next():
            rows.append(result.get_next())
        return rows

    def _count(self, query: str) -> int:
        rows = self._rows(query)
        return int(rows[0][0]) if rows else 0

    def _next_id(self, table: str) -> int:
        rows = self._rows(f"MATCH (n:{table}) RETURN max(n.id)")
        current = rows[0][0] if rows else None
        return 1 if current is None else int(current) + 1

    def _require(self, table: str, record_id: int, operation: str) -> None:
        """Reject writes whose referenced row is missing, mirroring SQL foreign keys."""
        rows = self._rows(
            f"MATCH (n:{table}) WHERE n.id = $id RETURN count(n)", {"id": record_id}
        )
        if not rows or not rows[0][0]:
            raise BackendError(
                f"{table} {record_id} does not exist", operation=operation
            )

def _file_params(file: File) -> dict[str, Any]:
    return {
        "id": file.id,
        "path": file.path,
        "language": file.language,
        "mtime": format_modification_time(file.modification_time),
        "indexed": file.indexed,
        "complete": file.complete,
        "lines": file.line_count,
    }

def _row_to_node(row: list[Any]) -> Node:
    return Node(id=row[0], type=decode_enum(NodeType, row[1]), serialized_name=row[2] or "")

def _row_to_edge(row: list[Any]) -> Edge:
    return Edge(
        id=row[0], type=decode_enum(EdgeType, row[1]), source_id=row[2], target_id=row[3]
    )

def _row_to_location(row: list[Any]) -> SourceLocation:
    return SourceLocation(
        id=row[0],
        file_node_id=row[1],
        start_line=row[2],
        start_column=row[3],
        end_line=row[4],
        end_column=row[5],
        type=decode_enum(SourceLocationType, row[6]),
    )

def _row_to_file(row: list[Any]) -> File:
    return File(
        id=row[0],
        path=row[1] or "",
        language=row[2] or "",
        modification_time=parse_modification_time(row[3]),
        indexed=bool(row[4]),
        complete=bool(row[5]),
        line_count=row[6] or 0,
    )

"""SQLite storage backend for symtrail.

Writes the relational layout read by the code-navigation frontend: one
``element`` table handing out ids, and ``node``, ``edge``, ``symbol``,
``file``, ``source_location``, ``occurrence`` ... tables referencing it.
The DDL below is part of the on-disk format and must stay byte-compatible
with storage version 25.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from symtrail.core.graph.model import (
    ComponentAccess,
    ComponentAccessType,
    EdgeType,
    Edge,
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

# Creation order respects foreign keys; dropping walks it backwards.
_TABLES: list[tuple[str, str]] = [
    ("element", "CREATE TABLE IF NOT EXISTS element(id INTEGER PRIMARY KEY);"),
    (
        "element_component",
        "CREATE TABLE IF NOT EXISTS element_component(id INTEGER PRIMARY KEY, "
        "element_id INTEGER, type INTEGER, data TEXT, FOREIGN KEY(element_id) "
        "REFERENCES element(id) ON DELETE CASCADE);",
    ),
    (
        "node",
        "CREATE TABLE IF NOT EXISTS node(id INTEGER PRIMARY KEY, type INTEGER, "
        "serialized_name TEXT, FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE);",
    ),
    (
        "edge",
        "CREATE TABLE IF NOT EXISTS edge(id INTEGER PRIMARY KEY, type INTEGER, "
        "source_node_id INTEGER, target_node_id INTEGER, FOREIGN KEY(source_node_id) "
        "REFERENCES node(id) ON DELETE CASCADE, FOREIGN KEY(target_node_id) "
        "REFERENCES node(id) ON DELETE CASCADE);",
    ),
    (
        "symbol",
        "CREATE TABLE IF NOT EXISTS symbol(id INTEGER PRIMARY KEY, definition_kind INTEGER, "
        "FOREIGN KEY(id) REFERENCES node(id) ON DELETE CASCADE);",
    ),
    (
        "file",
        "CREATE TABLE IF NOT EXISTS file(id INTEGER PRIMARY KEY, path TEXT, language TEXT, "
        "modification_time TEXT, indexed BOOLEAN, complete BOOLEAN, line_count INTEGER, "
        "FOREIGN KEY(id) REFERENCES node(id) ON DELETE CASCADE);",
    ),
    (
        "filecontent",
        "CREATE TABLE IF NOT EXISTS filecontent(id INTEGER PRIMARY KEY, content TEXT, "
        "FOREIGN KEY(id) REFERENCES file(id) ON DELETE CASCADE);",
    ),
    (
        "local_symbol",
        "CREATE TABLE IF NOT EXISTS local_symbol(id INTEGER PRIMARY KEY, name TEXT, "
        "FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE);",
    ),
    (
        "source_location",
        "CREATE TABLE IF NOT EXISTS source_location(id INTEGER PRIMARY KEY, "
        "file_node_id INTEGER, start_line INTEGER, start_column INTEGER, end_line INTEGER, "
        "end_column INTEGER, type INTEGER, FOREIGN KEY(file_node_id) REFERENCES node(id) "
        "ON DELETE CASCADE);",
    ),
    (
        "occurrence",
        "CREATE TABLE IF NOT EXISTS occurrence(element_id INTEGER, source_location_id INTEGER, "
        "PRIMARY KEY(element_id, source_location_id), FOREIGN KEY(element_id) REFERENCES "
        "element(id) ON DELETE CASCADE, FOREIGN KEY(source_location_id) REFERENCES "
        "source_location(id) ON DELETE CASCADE);",
    ),
    (
        "component_access",
        "CREATE TABLE IF NOT EXISTS component_access(node_id INTEGER PRIMARY KEY, type INTEGER, "
        "FOREIGN KEY(node_id) REFERENCES node(id) ON DELETE CASCADE);",
    ),
    (
        "error",
        "CREATE TABLE IF NOT EXISTS error(id INTEGER PRIMARY KEY, message TEXT, fatal BOOLEAN, "
        "indexed BOOLEAN, translation_unit TEXT, FOREIGN KEY(id) REFERENCES element(id) "
        "ON DELETE CASCADE);",
    ),
    ("meta", "CREATE TABLE IF NOT EXISTS meta(id INTEGER PRIMARY KEY, key TEXT, value TEXT);"),
]

# ``meta`` survives a clear so the storage version stays readable.
_CLEARED_TABLES: list[str] = [name for name, _ in reversed(_TABLES) if name != "meta"]

def _configure_connection(connection: sqlite3.Connection) -> None:
    """Enable foreign keys so dangling ids are rejected at insert time."""
    connection.execute("PRAGMA foreign_keys=ON;")

class SqliteBackend:
    """StorageBackend implementation writing the frontend's SQLite format.

    Usage::

        backend = SqliteBackend()
        backend.initialize(Path("project.srctrldb"))
        backend.create_tables()
        element_id = backend.allocate_element()
        backend.close()

    Every write commits immediately, so a crash never leaves a half-written
    record visible to readers.
    """

    def __init__(self) -> None:
        self._conn: sqlite3.Connection | None = None

    def initialize(self, path: Path | None) -> None:
        """Open the SQLite file at *path*, or an in-memory database for ``None``."""
        target = ":memory:" if path is None else str(path)
        try:
            self._conn = sqlite3.connect(target)
            _configure_connection(self._conn)
        except sqlite3.Error as exc:
            raise BackendError(f"cannot open {target}: {exc}", operation="open") from exc
        logger.debug("Opened SQLite database at %s", target)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def create_tables(self) -> None:
        for _, ddl in _TABLES:
            self._execute(ddl)

    def drop_tables(self) -> None:
        for name, _ in reversed(_TABLES):
            self._execute(f"DROP TABLE IF EXISTS {name};")

    def clear(self) -> None:
        for name in _CLEARED_TABLES:
            self._execute(f"DELETE FROM {name};")
        logger.debug("Cleared %d tables", len(_CLEARED_TABLES))

    def allocate_element(self) -> int:
        return self._insert("INSERT INTO element(id) VALUES(NULL);")

    def has_element(self, element_id: int) -> bool:
        return self._fetch_one("SELECT 1 FROM element WHERE id = ?;", (element_id,)) is not None

    def add_node(self, node: Node) -> None:
        self._execute(
            "INSERT INTO node(id, type, serialized_name) VALUES(?, ?, ?);",
            (node.id, int(node.type), node.serialized_name),
        )

    def get_node(self, node_id: int) -> Node | None:
        row = self._fetch_one(
            "SELECT id, type, serialized_name FROM node WHERE id = ?;", (node_id,)
        )
        return None if row is None else _row_to_node(row)

    def get_node_by_name(self, serialized_name: str) -> Node | None:
        row = self._fetch_one(
            "SELECT id, type, serialized_name FROM node WHERE serialized_name = ? LIMIT 1;",
            (serialized_name,),
        )
        return None if row is None else _row_to_node(row)

    def update_node(self, node: Node) -> None:
        self._execute(
            "UPDATE node SET type = ?, serialized_name = ? WHERE id = ?;",
            (int(node.type), node.serialized_name, node.id),
        )

    def list_nodes(self) -> list[Node]:
        rows = self._fetch_all("SELECT id, type, serialized_name FROM node ORDER BY id;")
        return [_row_to_node(row) for row in rows]

    def add_symbol(self, symbol: Symbol) -> None:
        self._execute(
            "INSERT INTO symbol(id, definition_kind) VALUES(?, ?);",
            (symbol.id, int(symbol.definition_kind)),
        )

    def get_symbol(self, symbol_id: int) -> Symbol | None:
        row = self._fetch_one(
            "SELECT id, definition_kind FROM symbol WHERE id = ?;", (symbol_id,)
        )
        if row is None:
            return None
        return Symbol(id=row[0], definition_kind=decode_enum(SymbolType, row[1]))

    def update_symbol(self, symbol: Symbol) -> None:
        self._execute(
            "UPDATE symbol SET definition_kind = ? WHERE id = ?;",
            (int(symbol.definition_kind), symbol.id),
        )

    def add_edge(self, edge: Edge) -> None:
        self._execute(
            "INSERT INTO edge(id, type, source_node_id, target_node_id) VALUES(?, ?, ?, ?);",
            (edge.id, int(edge.type), edge.source_id, edge.target_id),
        )

    def get_edge(self, edge_id: int) -> Edge | None:
        row = self._fetch_one(
            "SELECT id, type, source_node_id, target_node_id FROM edge WHERE id = ?;",
            (edge_id,),
        )
        return None if row is None else _row_to_edge(row)

    def list_edges(self) -> list[Edge]:
        rows = self._fetch_all(
            "SELECT id, type, source_node_id, target_node_id FROM edge ORDER BY id;"
        )
        return [_row_to_edge(row) for row in rows]

    def add_source_location(self, location: SourceLocation) -> int:
        return self._insert(
            "INSERT INTO source_location(id, file_node_id, start_line, start_column, "
            "end_line, end_column, type) VALUES(NULL, ?, ?, ?, ?, ?, ?);",
            (
                location.file_node_id,
                location.start_line,
                location.start_column,
                location.end_line,
                location.end_column,
                int(location.type),
            ),
        )

    def get_source_location(self, location_id: int) -> SourceLocation | None:
        row = self._fetch_one(
            "SELECT id, file_node_id, start_line, start_column, end_line, end_column, type "
            "FROM source_location WHERE id = ?;",
            (location_id,),
        )
        return None if row is None else _row_to_location(row)

    def list_source_locations(self) -> list[SourceLocation]:
        rows = self._fetch_all(
            "SELECT id, file_node_id, start_line, start_column, end_line, end_column, type "
            "FROM source_location ORDER BY id;"
        )
        return [_row_to_location(row) for row in rows]

    def add_occurrence(self, occurrence: Occurrence) -> None:
        self._execute(
            "INSERT INTO occurrence(element_id, source_location_id) VALUES(?, ?);",
            (occurrence.element_id, occurrence.source_location_id),
        )

    def list_occurrences(self) -> list[Occurrence]:
        rows = self._fetch_all(
            "SELECT element_id, source_location_id FROM occurrence "
            "ORDER BY source_location_id, element_id;"
        )
        return [Occurrence(element_id=row[0], source_location_id=row[1]) for row in rows]

    def add_file(self, file: File) -> None:
        self._execute(
            "INSERT INTO file(id, path, language, modification_time, indexed, complete, "
            "line_count) VALUES(?, ?, ?, ?, ?, ?, ?);",
            (
                file.id,
                file.path,
                file.language,
                format_modification_time(file.modification_time),
                file.indexed,
                file.complete,
                file.line_count,
            ),
        )

    def get_file(self, file_id: int) -> File | None:
        row = self._fetch_one(
            "SELECT id, path, language, modification_time, indexed, complete, line_count "
            "FROM file WHERE id = ?;",
            (file_id,),
        )
        return None if row is None else _row_to_file(row)

    def update_file(self, file: File) -> None:
        self._execute(
            "UPDATE file SET path = ?, language = ?, modification_time = ?, indexed = ?, "
            "complete = ?, line_count = ? WHERE id = ?;",
            (
                file.path,
                file.language,
                format_modification_time(file.modification_time),
                file.indexed,
                file.complete,
                file.line_count,
                file.id,
            ),
        )

    def list_files(self) -> list[File]:
        rows = self._fetch_all(
            "SELECT id, path, language, modification_time, indexed, complete, line_count "
            "FROM file ORDER BY id;"
        )
        return [_row_to_file(row) for row in rows]

    def add_file_content(self, content: FileContent) -> None:
        self._execute(
            "INSERT INTO filecontent(id, content) VALUES(?, ?);", (content.id, content.content)
        )

    def get_file_content(self, file_id: int) -> FileContent | None:
        row = self._fetch_one("SELECT id, content FROM filecontent WHERE id = ?;", (file_id,))
        return None if row is None else FileContent(id=row[0], content=row[1] or "")

    def update_file_content(self, content: FileContent) -> None:
        self._execute(
            "UPDATE filecontent SET content = ? WHERE id = ?;", (content.content, content.id)
        )

    def add_local_symbol(self, symbol: LocalSymbol) -> None:
        self._execute(
            "INSERT INTO local_symbol(id, name) VALUES(?, ?);", (symbol.id, symbol.name)
        )

    def get_local_symbol_by_name(self, name: str) -> LocalSymbol | None:
        row = self._fetch_one(
            "SELECT id, name FROM local_symbol WHERE name = ? LIMIT 1;", (name,)
        )
        return None if row is None else LocalSymbol(id=row[0], name=row[1])

    def add_error(self, error: ErrorRecord) -> None:
        self._execute(
            "INSERT INTO error(id, message, fatal, indexed, translation_unit) "
            "VALUES(?, ?, ?, ?, ?);",
            (error.id, error.message, error.fatal, error.indexed, error.translation_unit),
        )

    def list_errors(self) -> list[ErrorRecord]:
        rows = self._fetch_all(
            "SELECT id, message, fatal, indexed, translation_unit FROM error ORDER BY id;"
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
        return self._insert(
            "INSERT INTO element_component(id, element_id, type, data) VALUES(NULL, ?, ?, ?);",
            (component.element_id, int(component.type), component.data),
        )

    def list_element_components(self) -> list[ElementComponent]:
        rows = self._fetch_all(
            "SELECT id, element_id, type, data FROM element_component ORDER BY id;"
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
        self._execute(
            "INSERT OR REPLACE INTO component_access(node_id, type) VALUES(?, ?);",
            (access.node_id, int(access.type)),
        )

    def get_component_access(self, node_id: int) -> ComponentAccess | None:
        row = self._fetch_one(
            "SELECT node_id, type FROM component_access WHERE node_id = ?;", (node_id,)
        )
        if row is None:
            return None
        return ComponentAccess(node_id=row[0], type=decode_enum(ComponentAccessType, row[1]))

    def set_meta(self, key: str, value: str) -> None:
        row = self._fetch_one("SELECT id FROM meta WHERE key = ? LIMIT 1;", (key,))
        if row is None:
            self._execute("INSERT INTO meta(id, key, value) VALUES(NULL, ?, ?);", (key, value))
        else:
            self._execute("UPDATE meta SET value = ? WHERE id = ?;", (value, row[0]))

    def get_meta(self, key: str) -> str | None:
        row = self._fetch_one("SELECT value FROM meta WHERE key = ? LIMIT 1;", (key,))
        return None if row is None else row[0]

    def stats(self) -> dict[str, int]:
        tables = {
            "elements": "element",
            "nodes": "node",
            "edges": "edge",
            "symbols": "symbol",
            "files": "file",
            "source_locations": "source_location",
            "occurrences": "occurrence",
            "local_symbols": "local_symbol",
            "errors": "error",
        }
        return {
            key: self._fetch_one(f"SELECT COUNT(*) FROM {table};")[0]
            for key, table in tables.items()
        }

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Run one statement in its own transaction."""
        assert self._conn is not None
        try:
            with self._conn:
                return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise BackendError(f"{exc} (while executing {sql!r})", operation=sql) from exc

    def _insert(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        cursor = self._execute(sql, params)
        assert cursor.lastrowid is not None
        return cursor.lastrowid

    def _fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> tuple[Any, ...] | None:
        assert self._conn is not None
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise BackendError(f"{exc} (while executing {sql!r})", operation=sql) from exc

    def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        assert self._conn is not None
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise BackendError(f"{exc} (while executing {sql!r})", operation=sql) from exc

def _row_to_node(row: tuple[Any, ...]) -> Node:
    return Node(id=row[0], type=decode_enum(NodeType, row[1]), serialized_name=row[2] or "")

def _row_to_edge(row: tuple[Any, ...]) -> Edge:
    return Edge(
        id=row[0],
        type=decode_enum(EdgeType, row[1]),
        source_id=row[2],
        target_id=row[3],
    )

def _row_to_location(row: tuple[Any, ...]) -> SourceLocation:
    return SourceLocation(
        id=row[0],
        file_node_id=row[1],
        start_line=row[2],
        start_column=row[3],
        end_line=row[4],
        end_column=row[5],
        type=decode_enum(SourceLocationType, row[6]),
    )

def _row_to_file(row: tuple[Any, ...]) -> File:
    return File(
        id=row[0],
        path=row[1] or "",
        language=row[2] or "",
        modification_time=parse_modification_time(row[3]),
        indexed=bool(row[4]),
        complete=bool(row[5]),
        line_count=row[6] or 0,
    )

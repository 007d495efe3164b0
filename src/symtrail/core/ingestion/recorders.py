"""Fluent, validated recorders for every record kind.

Each recorder accumulates fields through chained setters and writes
nothing until :meth:`commit`. ``commit`` validates all fields and resolves
the ids they refer to before touching the backend, so a rejected record
leaves no trace.
Recorders are single-use: the first ``commit`` consumes them, whether it
succeeds or not.

Usage::

    class_id = db.record_class().name("PersonalInfo").commit()
    db.record_symbol_location().symbol(class_id).file(file_id) \\
        .start_position(3, 7).end_position(3, 18).commit()
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Union

from symtrail.config.languages import get_language
from symtrail.config.storage import (
    NAME_DELIMITER_CXX,
    NAME_DELIMITER_FILE,
    NAME_DELIMITER_UNKNOWN,
    UNSOLVED_SYMBOL_NAME,
)
from symtrail.core.graph.hierarchy import NameElement, NameHierarchy
from symtrail.core.graph.model import (
    EdgeType,
    ErrorRecord,
    File,
    FileContent,
    NodeType,
    Occurrence,
    SourceLocation,
    SourceLocationType,
    SymbolType,
    validate_range,
)
from symtrail.core.storage.base import StorageBackend
from symtrail.errors import (
    ElementNotFoundError,
    FileReadError,
    FileRecordNotFoundError,
    MissingFieldError,
    ParentNotFoundError,
    RecorderConsumedError,
)

if TYPE_CHECKING:
    from symtrail.core.database import SymbolDB

class _Unset(Enum):
    """Marker for a required field that was never set (distinct from ``0``)."""

    UNSET = "UNSET"

UNSET = _Unset.UNSET

Position = tuple[int, int]

def count_lines(content: str) -> int:
    """Return the number of lines in *content*.

    A trailing newline does not open a new line: ``"a\\nb"`` and
    ``"a\\nb\\n"`` both have two lines, ``""`` has none.
    """
    if not content:
        return 0
    return content.count("\n") + (0 if content.endswith("\n") else 1)

def write_location(
    backend: StorageBackend,
    element_id: int,
    file_id: int,
    start: Position,
    end: Position,
    location_type: SourceLocationType,
) -> int:
    """Write a source location plus the occurrence tying *element_id* to it."""
    location = SourceLocation(
        id=0,
        file_node_id=file_id,
        start_line=start[0],
        start_column=start[1],
        end_line=end[0],
        end_column=end[1],
        type=location_type,
    )
    location_id = backend.add_source_location(location)
    backend.add_occurrence(Occurrence(element_id=element_id, source_location_id=location_id))
    return location_id

class _Recorder:
    """Single-use guard shared by all recorders."""

    _label = "record"

    def __init__(self, db: SymbolDB) -> None:
        self._db = db
        self._committed = False

    def _consume(self) -> None:
        if self._committed:
            raise RecorderConsumedError(self._label)
        self._committed = True

    def _require(self, value: object, field: str) -> None:
        if value is UNSET:
            raise MissingFieldError(self._label, field)

    def _require_element(self, element_id: int) -> None:
        if not self._db.backend.has_element(element_id):
            raise ElementNotFoundError(element_id)

    def _require_node(self, node_id: int) -> None:
        if self._db.backend.get_node(node_id) is None:
            raise ElementNotFoundError(node_id)

class _SpanRecorder(_Recorder):
    """Recorder with a file and a start/end position."""

    def __init__(self, db: SymbolDB) -> None:
        super().__init__(db)
        self._file_id: Union[int, _Unset] = UNSET
        self._start: Union[Position, _Unset] = UNSET
        self._end: Union[Position, _Unset] = UNSET

    def file(self, file_id: int):
        self._file_id = file_id
        return self

    def start_position(self, line: int, column: int):
        self._start = (line, column)
        return self

    def end_position(self, line: int, column: int):
        self._end = (line, column)
        return self

    def _require_span(self) -> None:
        self._require(self._start, "start position")
        self._require(self._end, "end position")
        assert not isinstance(self._start, _Unset) and not isinstance(self._end, _Unset)
        validate_range(self._start, self._end)

    def _require_file(self) -> None:
        """Check that the file id has a file row. Call after the field checks."""
        file_id: int = self._file_id  # type: ignore[assignment]
        if self._db.backend.get_file(file_id) is None:
            raise FileRecordNotFoundError(file_id)

class NodeRecorder(_Recorder):
    """Records a named node, optionally nested under an existing parent.

    Without a parent the node is a one-level hierarchy under the configured
    delimiter. With a parent, the parent's stored name is decoded and the
    new element appended, so the child inherits the parent's delimiter.
    """

    _label = "node"

    def __init__(self, db: SymbolDB, node_type: NodeType) -> None:
        super().__init__(db)
        self._node_type = node_type
        self._name = ""
        self._prefix = ""
        self._postfix = ""
        self._delimiter = NAME_DELIMITER_CXX
        self._parent_id: int | None = None
        self._indexed = True

    def name(self, name: str) -> NodeRecorder:
        self._name = name
        return self

    def prefix(self, prefix: str) -> NodeRecorder:
        self._prefix = prefix
        return self

    def postfix(self, postfix: str) -> NodeRecorder:
        self._postfix = postfix
        return self

    def delimiter(self, delimiter: str) -> NodeRecorder:
        self._delimiter = delimiter
        return self

    def parent(self, parent_id: int | None) -> NodeRecorder:
        self._parent_id = parent_id
        return self

    def indexed(self, indexed: bool = True) -> NodeRecorder:
        self._indexed = indexed
        return self

    def commit(self) -> int:
        """Write the node and return its id.

        Raises:
            ParentNotFoundError: If the parent id has no node. Raised before
                any level is interned.
        """
        self._consume()
        element = NameElement(name=self._name, prefix=self._prefix, postfix=self._postfix)

        if self._parent_id is not None:
            parent = self._db.backend.get_node(self._parent_id)
            if parent is None:
                raise ParentNotFoundError(self._parent_id)
            hierarchy = NameHierarchy.deserialize_name(parent.serialized_name)
            hierarchy.push_element(element)
        else:
            hierarchy = NameHierarchy(self._delimiter, [element])

        graph = self._db.graph
        node_id = graph.record_symbol(hierarchy)
        graph.record_symbol_kind(node_id, self._node_type)
        if self._indexed:
            graph.record_definition_kind(node_id, SymbolType.EXPLICIT)
        return node_id

class SourceLocationRecorder(_SpanRecorder):
    """Attaches a source span of a fixed kind to a symbol or reference."""

    _label = "source location"

    def __init__(self, db: SymbolDB, location_type: SourceLocationType) -> None:
        super().__init__(db)
        self._location_type = location_type
        self._symbol_id: Union[int, _Unset] = UNSET

    def symbol(self, symbol_id: int) -> SourceLocationRecorder:
        self._symbol_id = symbol_id
        return self

    def commit(self) -> int:
        """Write the location and its occurrence; return the location id.

        Raises:
            ElementNotFoundError: If the symbol id was never allocated.
            FileRecordNotFoundError: If the file id has no file row.
        """
        self._consume()
        self._require(self._symbol_id, "symbol")
        self._require(self._file_id, "file")
        self._require_span()
        self._require_element(self._symbol_id)  # type: ignore[arg-type]
        self._require_file()
        return write_location(
            self._db.backend,
            self._symbol_id,  # type: ignore[arg-type]
            self._file_id,  # type: ignore[arg-type]
            self._start,  # type: ignore[arg-type]
            self._end,  # type: ignore[arg-type]
            self._location_type,
        )

class UnsolvedSymbolRecorder(_SpanRecorder):
    """Records a reference whose target could not be resolved.

    Every unsolved reference points at the same placeholder node, named
    ``"unsolved symbol"`` under the ``@`` delimiter.
    """

    _label = "unsolved symbol"

    def __init__(self, db: SymbolDB) -> None:
        super().__init__(db)
        self._symbol_id: Union[int, _Unset] = UNSET
        self._reference_type: Union[EdgeType, _Unset] = UNSET

    def symbol(self, symbol_id: int) -> UnsolvedSymbolRecorder:
        self._symbol_id = symbol_id
        return self

    def reference_type(self, edge_type: EdgeType) -> UnsolvedSymbolRecorder:
        self._reference_type = edge_type
        return self

    def commit(self) -> int:
        """Write the reference edge and its UNSOLVED location; return the edge id."""
        self._consume()
        self._require(self._symbol_id, "symbol")
        self._require(self._file_id, "file")
        self._require_span()
        self._require(self._reference_type, "reference type")
        self._require_node(self._symbol_id)  # type: ignore[arg-type]
        self._require_file()

        graph = self._db.graph
        placeholder_id = graph.record_symbol(
            NameHierarchy.single(NAME_DELIMITER_UNKNOWN, UNSOLVED_SYMBOL_NAME)
        )
        edge_id = graph.record_edge(
            self._symbol_id,  # type: ignore[arg-type]
            placeholder_id,
            self._reference_type,  # type: ignore[arg-type]
        )
        write_location(
            self._db.backend,
            edge_id,
            self._file_id,  # type: ignore[arg-type]
            self._start,  # type: ignore[arg-type]
            self._end,  # type: ignore[arg-type]
            SourceLocationType.UNSOLVED,
        )
        return edge_id

class ErrorRecorder(_SpanRecorder):
    """Records an indexer error at a source span."""

    _label = "error"

    def __init__(self, db: SymbolDB) -> None:
        super().__init__(db)
        self._message = ""
        self._fatal = False
        self._translation_unit = ""

    def message(self, message: str) -> ErrorRecorder:
        self._message = message
        return self

    def fatal(self, fatal: bool = True) -> ErrorRecorder:
        self._fatal = fatal
        return self

    def translation_unit(self, translation_unit: str) -> ErrorRecorder:
        self._translation_unit = translation_unit
        return self

    def commit(self) -> int:
        """Write the error and its INDEXER_ERROR location; return the error id."""
        self._consume()
        self._require(self._file_id, "file")
        if not self._message:
            raise MissingFieldError(self._label, "message", "cannot commit error record: message is empty")
        self._require_span()
        self._require_file()

        backend = self._db.backend
        error_id = backend.allocate_element()
        backend.add_error(
            ErrorRecord(
                id=error_id,
                message=self._message,
                fatal=self._fatal,
                indexed=True,
                translation_unit=self._translation_unit,
            )
        )
        write_location(
            backend,
            error_id,
            self._file_id,  # type: ignore[arg-type]
            self._start,  # type: ignore[arg-type]
            self._end,  # type: ignore[arg-type]
            SourceLocationType.INDEXER_ERROR,
        )
        return error_id

class FileRecorder(_Recorder):
    """Records a source file, its metadata and (when indexed) its text.

    Recording the same path twice updates the existing file row instead of
    failing.
    """

    _label = "file"

    def __init__(self, db: SymbolDB) -> None:
        super().__init__(db)
        self._path: Union[str, _Unset] = UNSET
        self._modification_time = datetime.now(tz=timezone.utc)
        self._content = ""
        self._indexed = True
        self._language: str | None = None

    def path(self, path: str | Path) -> FileRecorder:
        self._path = str(path)
        return self

    def modification_time(self, modification_time: datetime) -> FileRecorder:
        self._modification_time = modification_time
        return self

    def content(self, content: str) -> FileRecorder:
        self._content = content
        return self

    def indexed(self, indexed: bool = True) -> FileRecorder:
        self._indexed = indexed
        return self

    def language(self, language: str) -> FileRecorder:
        self._language = language
        return self

    def commit_from_disk(self, path: str | Path | None = None) -> int:
        """Read modification time and text of the file, then :meth:`commit`.

        Raises:
            FileReadError: If the file cannot be stat'ed, read or decoded.
        """
        if path is not None:
            self.path(path)
        self._require(self._path, "path")
        target = Path(self._path)  # type: ignore[arg-type]
        try:
            stat = target.stat()
            with target.open(encoding="utf-8", newline="") as handle:
                content = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise FileReadError(f"cannot read {target}: {exc}", path=str(target)) from exc

        self._modification_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        self._content = content
        return self.commit()

    def commit(self) -> int:
        """Write the file node, file row and content; return the file id."""
        self._consume()
        self._require(self._path, "path")
        path: str = self._path  # type: ignore[assignment]

        file_hierarchy = NameHierarchy.single(NAME_DELIMITER_FILE, path)
        backend = self._db.backend
        file_id, _ = self._db.interner.intern(file_hierarchy.serialize_name(), NodeType.FILE)
        self._db.graph.record_symbol_kind(file_id, NodeType.FILE)

        language = self._language if self._language is not None else get_language(path) or ""
        record = File(
            id=file_id,
            path=path,
            language=language,
            modification_time=self._modification_time,
            indexed=self._indexed,
            complete=True,
            line_count=count_lines(self._content) if self._indexed else 0,
        )
        if backend.get_file(file_id) is None:
            backend.add_file(record)
        else:
            backend.update_file(record)

        if self._indexed:
            content = FileContent(id=file_id, content=self._content)
            if backend.get_file_content(file_id) is None:
                backend.add_file_content(content)
            else:
                backend.update_file_content(content)
        return file_id

"""Symbol graph data model for symtrail.

Defines the closed tag sets persisted in the database (node kinds, edge
kinds, source location kinds, ...) and the record types exchanged with a
storage backend. The integer value of every enum member is written to disk
and must never be renumbered.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import TypeVar

from symtrail.errors import DecodeError, InvalidSourceRangeError

class NodeType(IntEnum):
    """Kinds of named entities a graph node can represent."""

    SYMBOL = 1 << 0
    TYPE = 1 << 1
    BUILTIN_TYPE = 1 << 2
    MODULE = 1 << 3
    NAMESPACE = 1 << 4
    PACKAGE = 1 << 5
    STRUCT = 1 << 6
    CLASS = 1 << 7
    INTERFACE = 1 << 8
    ANNOTATION = 1 << 9
    GLOBAL_VARIABLE = 1 << 10
    FIELD = 1 << 11
    FUNCTION = 1 << 12
    METHOD = 1 << 13
    ENUM = 1 << 14
    ENUM_CONSTANT = 1 << 15
    TYPEDEF = 1 << 16
    TYPE_PARAMETER = 1 << 17
    FILE = 1 << 18
    MACRO = 1 << 19
    UNION = 1 << 20

class EdgeType(IntEnum):
    """Relationship types connecting graph nodes."""

    UNDEFINED = 0
    MEMBER = 1 << 0
    TYPE_USAGE = 1 << 1
    USAGE = 1 << 2
    CALL = 1 << 3
    INHERITANCE = 1 << 4
    OVERRIDE = 1 << 5
    TYPE_ARGUMENT = 1 << 6
    TEMPLATE_SPECIALIZATION = 1 << 7
    INCLUDE = 1 << 8
    IMPORT = 1 << 9
    BUNDLED_EDGES = 1 << 10
    MACRO_USAGE = 1 << 11
    ANNOTATION_USAGE = 1 << 12

class SymbolType(IntEnum):
    """How a symbol's definition was observed by the indexer."""

    NONE = 0
    IMPLICIT = 1
    EXPLICIT = 2

class SourceLocationType(IntEnum):
    """Role of a source span relative to the element it is attached to."""

    TOKEN = 0
    SCOPE = 1
    QUALIFIER = 2
    LOCAL_SYMBOL = 3
    SIGNATURE = 4
    ATOMIC_RANGE = 5
    INDEXER_ERROR = 6
    FULLTEXT_SEARCH = 7
    SCREEN_SEARCH = 8
    UNSOLVED = 9

class ComponentAccessType(IntEnum):
    """Access specifier of a class member."""

    NONE = 0
    PUBLIC = 1
    PROTECTED = 2
    PRIVATE = 3
    DEFAULT = 4
    TEMPLATE_PARAMETER = 5
    TYPE_PARAMETER = 6

class ElementComponentType(IntEnum):
    """Extra flags attached to an element."""

    NONE = 0
    IS_AMBIGUOUS = 1

_E = TypeVar("_E", bound=IntEnum)

def decode_enum(enum_type: type[_E], value: int) -> _E:
    """Convert a persisted integer back into *enum_type*.

    Raises:
        DecodeError: If *value* is not a discriminant of *enum_type*.
    """
    try:
        return enum_type(value)
    except ValueError as exc:
        raise DecodeError(f"{value!r} is not a valid {enum_type.__name__}") from exc

MODIFICATION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

def format_modification_time(value: datetime) -> str:
    """Render *value* in the database's ``YYYY-MM-DD HH:MM:SS`` UTC form."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(MODIFICATION_TIME_FORMAT)

def parse_modification_time(value: str) -> datetime:
    """Parse a stored modification time into an aware UTC datetime."""
    try:
        parsed = datetime.strptime(value, MODIFICATION_TIME_FORMAT)
    except ValueError as exc:
        raise DecodeError(f"invalid modification time {value!r}") from exc
    return parsed.replace(tzinfo=timezone.utc)

@dataclass
class Node:
    """A named entity of the symbol graph.

    ``serialized_name`` holds the encoded :class:`NameHierarchy` and is unique
    per node.
    """

    id: int
    type: NodeType
    serialized_name: str

@dataclass
class Edge:
    """A directed, typed relationship between two nodes."""

    id: int
    type: EdgeType
    source_id: int
    target_id: int

@dataclass
class Symbol:
    """Definition kind of a node that was recorded as a symbol."""

    id: int
    definition_kind: SymbolType

@dataclass
class File:
    """A source file known to the database, keyed by its node id."""

    id: int
    path: str
    language: str
    modification_time: datetime
    indexed: bool = True
    complete: bool = True
    line_count: int = 0

@dataclass
class FileContent:
    """Full text of an indexed file."""

    id: int
    content: str

@dataclass
class LocalSymbol:
    """A function-local name (parameter, local variable) deduplicated by name."""

    id: int
    name: str

@dataclass
class SourceLocation:
    """A span of source text inside a file.

    Lines and columns are 1-based and caller supplied. Construction fails
    with :class:`InvalidSourceRangeError` when the span ends before it
    starts, or is empty on a single line.
    """

    id: int
    file_node_id: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    type: SourceLocationType

    def __post_init__(self) -> None:
        validate_range(
            (self.start_line, self.start_column), (self.end_line, self.end_column)
        )

def validate_range(start: tuple[int, int], end: tuple[int, int]) -> None:
    """Raise :class:`InvalidSourceRangeError` unless *start* precedes *end*."""
    start_line, start_column = start
    end_line, end_column = end
    if start_line > end_line or (start_line == end_line and start_column >= end_column):
        raise InvalidSourceRangeError(start, end)

@dataclass
class Occurrence:
    """Links an element (node, edge, error, local symbol) to a source location."""

    element_id: int
    source_location_id: int

@dataclass
class ErrorRecord:
    """An indexer error reported by the caller."""

    id: int
    message: str
    fatal: bool = False
    indexed: bool = True
    translation_unit: str = ""

@dataclass
class ElementComponent:
    """A flag attached to an element, e.g. an ambiguous reference."""

    id: int
    element_id: int
    type: ElementComponentType
    data: str = ""

@dataclass
class ComponentAccess:
    """Access specifier recorded for a member node."""

    node_id: int
    type: ComponentAccessType

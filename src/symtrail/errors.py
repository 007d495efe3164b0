"""Exception hierarchy for symtrail.

Every failure surfaced by the recording core or a storage backend derives
from :class:`SymtrailError`, so indexers can catch one type at their
outermost loop.
"""

from __future__ import annotations

class SymtrailError(Exception):
    """Base exception for all symtrail errors."""

    pass

class EmptyNameHierarchyError(SymtrailError):
    """Raised when a name hierarchy is built without any element."""

    def __init__(self, message: str = "name hierarchy must contain at least one element"):
        super().__init__(message)

class SerializeError(SymtrailError):
    """Raised when a name hierarchy range cannot be encoded."""

    def __init__(self, start: int, end: int, size: int):
        self.start = start
        self.end = end
        self.size = size
        super().__init__(
            f"cannot serialize elements [{start}, {end}) of a hierarchy of size {size}"
        )

class DecodeError(SymtrailError):
    """Raised when persisted data cannot be turned back into a value."""

    pass

class DeserializeError(DecodeError):
    """Raised when a serialized name hierarchy is malformed."""

    def __init__(self, message: str, serialized_name: str | None = None):
        self.serialized_name = serialized_name
        super().__init__(message)

class ParentNotFoundError(SymtrailError):
    """Raised when a node is recorded under a parent id with no node row."""

    def __init__(self, parent_id: int):
        self.parent_id = parent_id
        super().__init__(f"parent with id {parent_id} does not exist in the database")

class FileRecordNotFoundError(SymtrailError):
    """Raised when a file id does not refer to a recorded file."""

    def __init__(self, file_id: int):
        self.file_id = file_id
        super().__init__(f"file with id {file_id} does not exist in the database")

class ElementNotFoundError(SymtrailError):
    """Raised when a location or reference names a symbol id that was never recorded."""

    def __init__(self, element_id: int):
        self.element_id = element_id
        super().__init__(f"element with id {element_id} does not exist in the database")

class InvalidSourceRangeError(SymtrailError):
    """Raised when a source range ends before it starts."""

    def __init__(
        self,
        start: tuple[int, int],
        end: tuple[int, int],
    ):
        self.start = start
        self.end = end
        super().__init__(
            f"invalid source range {start[0]}:{start[1]} - {end[0]}:{end[1]}"
        )

class MissingFieldError(SymtrailError):
    """Raised when a recorder is committed without a required field."""

    def __init__(self, recorder: str, field: str, message: str | None = None):
        self.recorder = recorder
        self.field = field
        super().__init__(message or f"cannot commit {recorder} record: missing {field}")

class RecorderConsumedError(SymtrailError):
    """Raised when a recorder is committed a second time."""

    def __init__(self, recorder: str):
        self.recorder = recorder
        super().__init__(f"{recorder} recorder has already been committed")

class BackendError(SymtrailError):
    """Raised when the storage backend rejects an operation."""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)

class FileReadError(SymtrailError):
    """Raised when a source file cannot be read from disk."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)

class DatabaseExistsError(SymtrailError):
    """Raised when creating a database at a path that already holds one."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} already exists")

class DatabaseNotFoundError(SymtrailError):
    """Raised when opening a database that does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} not found")

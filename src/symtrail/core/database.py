"""Database facade: lifecycle and the public ``record_*`` surface.

:class:`SymbolDB` owns one storage backend, one interner cache and one
graph builder. Node, location, file and error records are produced by
fluent recorders (see :mod:`symtrail.core.ingestion.recorders`);
references, local symbols and component rows are written directly.

Usage::

    with SymbolDB.create("project") as db:
        file_id = db.record_file().path("src/main.cpp").content(text).commit()
        class_id = db.record_class().name("PersonalInfo").commit()
        db.record_symbol_location().symbol(class_id).file(file_id) \\
            .start_position(3, 7).end_position(3, 18).commit()
"""

from __future__ import annotations

import logging
from pathlib import Path

from symtrail.config.storage import (
    DEFAULT_BACKEND,
    PROJECT_EXTENSION,
    PROJECT_SETTINGS_XML,
    STORAGE_VERSION,
    resolve_database_path,
)
from symtrail.core.graph.model import (
    ComponentAccess,
    ComponentAccessType,
    EdgeType,
    ElementComponent,
    ElementComponentType,
    LocalSymbol,
    NodeType,
    SourceLocationType,
)
from symtrail.core.ingestion.interner import SymbolGraphBuilder, SymbolInterner
from symtrail.core.ingestion.recorders import (
    ErrorRecorder,
    FileRecorder,
    NodeRecorder,
    SourceLocationRecorder,
    UnsolvedSymbolRecorder,
)
from symtrail.core.storage.base import StorageBackend
from symtrail.errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    FileRecordNotFoundError,
    SymtrailError,
)

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "kuzu", "memory")

def create_backend(name: str = DEFAULT_BACKEND) -> StorageBackend:
    """Instantiate an uninitialised backend by name."""
    if name == "sqlite":
        from symtrail.core.storage.sqlite_backend import SqliteBackend

        return SqliteBackend()
    if name == "kuzu":
        from symtrail.core.storage.kuzu_backend import KuzuBackend

        return KuzuBackend()
    if name == "memory":
        from symtrail.core.storage.memory_backend import MemoryBackend

        return MemoryBackend()
    raise SymtrailError(f"unknown backend {name!r}; expected one of {', '.join(BACKENDS)}")

class SymbolDB:
    """A symbol-graph database opened for recording.

    Not thread-safe: one writer per database. The interner cache lives as
    long as this object and is dropped by :meth:`clear`.
    """

    def __init__(self, backend: StorageBackend, path: Path | None = None) -> None:
        self._backend = backend
        self._path = path
        self._interner = SymbolInterner(backend)
        self._graph = SymbolGraphBuilder(backend, self._interner)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, path: str | Path, backend: str = DEFAULT_BACKEND) -> SymbolDB:
        """Create a new database at *path* plus its project settings file.

        Raises:
            DatabaseExistsError: If the database file already exists.
        """
        target = resolve_database_path(path)
        if target.exists():
            raise DatabaseExistsError(str(target))

        store = create_backend(backend)
        store.initialize(target)
        store.create_tables()
        store.set_meta("storage_version", str(STORAGE_VERSION))
        store.set_meta("project_settings", PROJECT_SETTINGS_XML)
        target.with_suffix(PROJECT_EXTENSION).write_text(PROJECT_SETTINGS_XML, encoding="utf-8")

        logger.debug("Created %s database at %s", backend, target)
        return cls(store, target)

    @classmethod
    def open(
        cls, path: str | Path, clear: bool = False, backend: str = DEFAULT_BACKEND
    ) -> SymbolDB:
        """Open an existing database, or create it when missing and *clear* is set.

        Raises:
            DatabaseNotFoundError: If the database is missing and *clear* is
                ``False``.
        """
        target = resolve_database_path(path)
        if not target.exists():
            if not clear:
                raise DatabaseNotFoundError(str(target))
            return cls.create(target, backend=backend)

        store = create_backend(backend)
        store.initialize(target)
        store.create_tables()
        db = cls(store, target)
        if clear:
            db.clear()
        logger.debug("Opened %s database at %s", backend, target)
        return db

    @classmethod
    def in_memory(cls, backend: str = "memory") -> SymbolDB:
        """Open a throw-away database that is never written to disk."""
        store = create_backend(backend)
        store.initialize(None)
        store.create_tables()
        store.set_meta("storage_version", str(STORAGE_VERSION))
        return cls(store)

    @staticmethod
    def exists(path: str | Path) -> bool:
        return resolve_database_path(path).exists()

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def interner(self) -> SymbolInterner:
        return self._interner

    @property
    def graph(self) -> SymbolGraphBuilder:
        return self._graph

    def storage_version(self) -> int | None:
        value = self._backend.get_meta("storage_version")
        return int(value) if value is not None else None

    def clear(self) -> None:
        """Delete every record and forget all cached names."""
        self._backend.clear()
        self._interner.clear()
        logger.debug("Cleared database %s", self._path or "<memory>")

    def close(self) -> None:
        self._backend.close()
        logger.debug("Closed database %s", self._path or "<memory>")

    def __enter__(self) -> SymbolDB:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def record_node(self, node_type: NodeType) -> NodeRecorder:
        return NodeRecorder(self, node_type)

    def record_symbol_node(self) -> NodeRecorder:
        return self.record_node(NodeType.SYMBOL)

    def record_type_node(self) -> NodeRecorder:
        return self.record_node(NodeType.TYPE)

    def record_builtin_type_node(self) -> NodeRecorder:
        return self.record_node(NodeType.BUILTIN_TYPE)

    def record_module(self) -> NodeRecorder:
        return self.record_node(NodeType.MODULE)

    def record_namespace(self) -> NodeRecorder:
        return self.record_node(NodeType.NAMESPACE)

    def record_package(self) -> NodeRecorder:
        return self.record_node(NodeType.PACKAGE)

    def record_struct(self) -> NodeRecorder:
        return self.record_node(NodeType.STRUCT)

    def record_class(self) -> NodeRecorder:
        return self.record_node(NodeType.CLASS)

    def record_interface(self) -> NodeRecorder:
        return self.record_node(NodeType.INTERFACE)

    def record_annotation(self) -> NodeRecorder:
        return self.record_node(NodeType.ANNOTATION)

    def record_global_variable(self) -> NodeRecorder:
        return self.record_node(NodeType.GLOBAL_VARIABLE)

    def record_field(self) -> NodeRecorder:
        return self.record_node(NodeType.FIELD)

    def record_function(self) -> NodeRecorder:
        return self.record_node(NodeType.FUNCTION)

    def record_method(self) -> NodeRecorder:
        return self.record_node(NodeType.METHOD)

    def record_enum(self) -> NodeRecorder:
        return self.record_node(NodeType.ENUM)

    def record_enum_constant(self) -> NodeRecorder:
        return self.record_node(NodeType.ENUM_CONSTANT)

    def record_typedef_node(self) -> NodeRecorder:
        return self.record_node(NodeType.TYPEDEF)

    def record_type_parameter_node(self) -> NodeRecorder:
        return self.record_node(NodeType.TYPE_PARAMETER)

    def record_macro(self) -> NodeRecorder:
        return self.record_node(NodeType.MACRO)

    def record_union(self) -> NodeRecorder:
        return self.record_node(NodeType.UNION)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def record_reference(self, source_id: int, target_id: int, edge_type: EdgeType) -> int:
        """Write an edge between two existing nodes and return its element id."""
        return self._graph.record_edge(source_id, target_id, edge_type)

    def record_ref_member(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.MEMBER)

    def record_ref_type_usage(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.TYPE_USAGE)

    def record_ref_usage(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.USAGE)

    def record_ref_call(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.CALL)

    def record_ref_inheritance(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.INHERITANCE)

    def record_ref_override(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.OVERRIDE)

    def record_ref_type_argument(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.TYPE_ARGUMENT)

    def record_ref_template_specialization(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.TEMPLATE_SPECIALIZATION)

    def record_ref_include(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.INCLUDE)

    def record_ref_import(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.IMPORT)

    def record_ref_bundled_edges(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.BUNDLED_EDGES)

    def record_ref_macro_usage(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.MACRO_USAGE)

    def record_ref_annotation_usage(self, source_id: int, target_id: int) -> int:
        return self.record_reference(source_id, target_id, EdgeType.ANNOTATION_USAGE)

    def record_reference_to_unsolved_symbol(self) -> UnsolvedSymbolRecorder:
        return UnsolvedSymbolRecorder(self)

    def record_reference_is_ambiguous(self, reference_id: int) -> int:
        """Flag *reference_id* as ambiguous; returns the component row id."""
        return self._backend.add_element_component(
            ElementComponent(
                id=0,
                element_id=reference_id,
                type=ElementComponentType.IS_AMBIGUOUS,
                data="",
            )
        )

    # ------------------------------------------------------------------
    # Local symbols and components
    # ------------------------------------------------------------------

    def record_local_symbol(self, name: str) -> int:
        """Return the id of the local symbol *name*, creating it on first use."""
        existing = self._backend.get_local_symbol_by_name(name)
        if existing is not None:
            return existing.id
        element_id = self._backend.allocate_element()
        self._backend.add_local_symbol(LocalSymbol(id=element_id, name=name))
        return element_id

    def record_component_access(self, node_id: int, access: ComponentAccessType) -> None:
        self._backend.set_component_access(ComponentAccess(node_id=node_id, type=access))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def record_file(self) -> FileRecorder:
        return FileRecorder(self)

    def record_file_language(self, file_id: int, language: str) -> None:
        """Set the language of a recorded file.

        Raises:
            FileRecordNotFoundError: If *file_id* has no file row.
        """
        file = self._backend.get_file(file_id)
        if file is None:
            raise FileRecordNotFoundError(file_id)
        file.language = language
        self._backend.update_file(file)

    # ------------------------------------------------------------------
    # Source locations and errors
    # ------------------------------------------------------------------

    def record_location(self, location_type: SourceLocationType) -> SourceLocationRecorder:
        return SourceLocationRecorder(self, location_type)

    def record_symbol_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.TOKEN)

    def record_symbol_scope_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.SCOPE)

    def record_symbol_signature_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.SIGNATURE)

    def record_reference_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.TOKEN)

    def record_qualifier_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.QUALIFIER)

    def record_local_symbol_location(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.LOCAL_SYMBOL)

    def record_atomic_source_range(self) -> SourceLocationRecorder:
        return self.record_location(SourceLocationType.ATOMIC_RANGE)

    def record_error(self) -> ErrorRecorder:
        return ErrorRecorder(self)

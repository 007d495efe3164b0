"""Tests for the SymbolDB facade."""

from __future__ import annotations

from pathlib import Path

import pytest

from symtrail.config.storage import PROJECT_SETTINGS_XML, STORAGE_VERSION
from symtrail.core.database import SymbolDB, create_backend
from symtrail.core.graph.hierarchy import NameHierarchy
from symtrail.core.graph.model import (
    ComponentAccessType,
    EdgeType,
    ElementComponentType,
    NodeType,
)
from symtrail.core.storage.memory_backend import MemoryBackend
from symtrail.core.storage.sqlite_backend import SqliteBackend
from symtrail.errors import (
    BackendError,
    DatabaseExistsError,
    DatabaseNotFoundError,
    ElementNotFoundError,
    FileRecordNotFoundError,
    SymtrailError,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db() -> SymbolDB:
    database = SymbolDB.in_memory()
    yield database
    database.close()


@pytest.fixture()
def sqlite_db(tmp_path: Path) -> SymbolDB:
    database = SymbolDB.create(tmp_path / "project")
    yield database
    database.close()


def _qualified(db: SymbolDB, node_id: int) -> str:
    node = db.backend.get_node(node_id)
    return NameHierarchy.deserialize_name(node.serialized_name).qualified_name()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestCreateBackend:
    def test_known_names(self) -> None:
        assert isinstance(create_backend("sqlite"), SqliteBackend)
        assert isinstance(create_backend("memory"), MemoryBackend)

    def test_unknown_name(self) -> None:
        with pytest.raises(SymtrailError, match="unknown backend"):
            create_backend("postgres")


class TestLifecycle:
    def test_create_enforces_extension(self, tmp_path: Path) -> None:
        with SymbolDB.create(tmp_path / "project") as db:
            assert db.path == tmp_path / "project.srctrldb"
        assert (tmp_path / "project.srctrldb").exists()

    def test_create_writes_meta_and_project_file(self, tmp_path: Path) -> None:
        with SymbolDB.create(tmp_path / "project") as db:
            assert db.storage_version() == STORAGE_VERSION
            assert db.backend.get_meta("project_settings") == PROJECT_SETTINGS_XML
        project_file = tmp_path / "project.srctrlprj"
        assert project_file.read_text(encoding="utf-8") == PROJECT_SETTINGS_XML

    def test_create_existing_fails(self, tmp_path: Path) -> None:
        SymbolDB.create(tmp_path / "project").close()
        with pytest.raises(DatabaseExistsError):
            SymbolDB.create(tmp_path / "project.srctrldb")

    def test_exists(self, tmp_path: Path) -> None:
        assert SymbolDB.exists(tmp_path / "project") is False
        SymbolDB.create(tmp_path / "project").close()
        assert SymbolDB.exists(tmp_path / "project") is True

    def test_open_missing_fails(self, tmp_path: Path) -> None:
        with pytest.raises(DatabaseNotFoundError):
            SymbolDB.open(tmp_path / "missing")

    def test_open_missing_with_clear_creates(self, tmp_path: Path) -> None:
        with SymbolDB.open(tmp_path / "fresh", clear=True) as db:
            assert db.storage_version() == STORAGE_VERSION
        assert (tmp_path / "fresh.srctrldb").exists()

    def test_open_with_clear_empties_but_keeps_meta(self, tmp_path: Path) -> None:
        with SymbolDB.create(tmp_path / "project") as db:
            db.record_class().name("A").commit()

        with SymbolDB.open(tmp_path / "project", clear=True) as db:
            assert db.backend.stats()["nodes"] == 0
            assert db.storage_version() == STORAGE_VERSION

    def test_clear_resets_interner(self, db: SymbolDB) -> None:
        db.record_class().name("A").commit()
        db.clear()
        assert len(db.interner) == 0
        node_id = db.record_class().name("A").commit()
        assert db.backend.get_node(node_id) is not None
        assert db.backend.stats()["nodes"] == 1

    def test_in_memory_has_no_path(self, db: SymbolDB) -> None:
        assert db.path is None
        assert db.storage_version() == STORAGE_VERSION


# ---------------------------------------------------------------------------
# End-to-end recording
# ---------------------------------------------------------------------------


class TestPersonalInfoScenario:
    """Two classes, a method, a field and a usage between them."""

    def test_graph_shape(self, sqlite_db: SymbolDB) -> None:
        db = sqlite_db
        main_class = db.record_class().name("MyMainClass").commit()
        main_method = db.record_method().name("main").parent(main_class).commit()
        info_class = db.record_class().name("PersonalInfo").commit()
        first_name = db.record_field().name("first_name").parent(info_class).commit()
        usage = db.record_ref_usage(main_method, first_name)

        assert _qualified(db, main_method) == "MyMainClass::main"
        assert _qualified(db, first_name) == "PersonalInfo::first_name"
        assert db.backend.get_node(main_method).type == NodeType.METHOD
        assert db.backend.get_node(first_name).type == NodeType.FIELD

        edges = {(e.source_id, e.target_id, e.type) for e in db.backend.list_edges()}
        assert edges == {
            (main_class, main_method, EdgeType.MEMBER),
            (info_class, first_name, EdgeType.MEMBER),
            (main_method, first_name, EdgeType.USAGE),
        }
        assert db.backend.get_edge(usage).type == EdgeType.USAGE

    def test_locations_against_file(self, sqlite_db: SymbolDB) -> None:
        db = sqlite_db
        file_id = (
            db.record_file()
            .path("PersonalInfo.java")
            .content("class PersonalInfo {\n    String first_name;\n}\n")
            .commit()
        )
        class_id = db.record_class().name("PersonalInfo").delimiter(".").commit()
        (
            db.record_symbol_location()
            .symbol(class_id)
            .file(file_id)
            .start_position(1, 7)
            .end_position(1, 18)
            .commit()
        )
        (
            db.record_symbol_scope_location()
            .symbol(class_id)
            .file(file_id)
            .start_position(1, 1)
            .end_position(3, 1)
            .commit()
        )

        stats = db.backend.stats()
        assert stats["files"] == 1
        assert stats["source_locations"] == 2
        assert stats["occurrences"] == 2
        file = db.backend.get_file(file_id)
        assert file.language == "java"
        assert file.line_count == 3


class TestReopen:
    def test_reopen_reuses_existing_nodes(self, tmp_path: Path) -> None:
        with SymbolDB.create(tmp_path / "project") as db:
            class_id = db.record_class().name("A").commit()
            method_id = db.record_method().name("m").parent(class_id).commit()
            before = db.backend.stats()

        with SymbolDB.open(tmp_path / "project") as db:
            assert db.record_class().name("A").commit() == class_id
            assert db.record_method().name("m").parent(class_id).commit() == method_id
            assert db.backend.stats() == before

    def test_reopen_shares_unsolved_placeholder(self, tmp_path: Path) -> None:
        def record_unsolved(db: SymbolDB) -> int:
            file_id = db.record_file().path("a.cpp").content("f();\n").commit()
            caller = db.record_function().name("caller").commit()
            edge_id = (
                db.record_reference_to_unsolved_symbol()
                .symbol(caller)
                .reference_type(EdgeType.CALL)
                .file(file_id)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
            return db.backend.get_edge(edge_id).target_id

        with SymbolDB.create(tmp_path / "project") as db:
            first = record_unsolved(db)
        with SymbolDB.open(tmp_path / "project") as db:
            assert record_unsolved(db) == first


# ---------------------------------------------------------------------------
# Node shorthands
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("factory", "expected"),
    [
        ("record_symbol_node", NodeType.SYMBOL),
        ("record_type_node", NodeType.TYPE),
        ("record_builtin_type_node", NodeType.BUILTIN_TYPE),
        ("record_module", NodeType.MODULE),
        ("record_namespace", NodeType.NAMESPACE),
        ("record_package", NodeType.PACKAGE),
        ("record_struct", NodeType.STRUCT),
        ("record_class", NodeType.CLASS),
        ("record_interface", NodeType.INTERFACE),
        ("record_annotation", NodeType.ANNOTATION),
        ("record_global_variable", NodeType.GLOBAL_VARIABLE),
        ("record_field", NodeType.FIELD),
        ("record_function", NodeType.FUNCTION),
        ("record_method", NodeType.METHOD),
        ("record_enum", NodeType.ENUM),
        ("record_enum_constant", NodeType.ENUM_CONSTANT),
        ("record_typedef_node", NodeType.TYPEDEF),
        ("record_type_parameter_node", NodeType.TYPE_PARAMETER),
        ("record_macro", NodeType.MACRO),
        ("record_union", NodeType.UNION),
    ],
)
def test_node_shorthands(db: SymbolDB, factory: str, expected: NodeType) -> None:
    node_id = getattr(db, factory)().name("thing").commit()
    assert db.backend.get_node(node_id).type == expected


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("method", "expected"),
    [
        ("record_ref_member", EdgeType.MEMBER),
        ("record_ref_type_usage", EdgeType.TYPE_USAGE),
        ("record_ref_usage", EdgeType.USAGE),
        ("record_ref_call", EdgeType.CALL),
        ("record_ref_inheritance", EdgeType.INHERITANCE),
        ("record_ref_override", EdgeType.OVERRIDE),
        ("record_ref_type_argument", EdgeType.TYPE_ARGUMENT),
        ("record_ref_template_specialization", EdgeType.TEMPLATE_SPECIALIZATION),
        ("record_ref_include", EdgeType.INCLUDE),
        ("record_ref_import", EdgeType.IMPORT),
        ("record_ref_bundled_edges", EdgeType.BUNDLED_EDGES),
        ("record_ref_macro_usage", EdgeType.MACRO_USAGE),
        ("record_ref_annotation_usage", EdgeType.ANNOTATION_USAGE),
    ],
)
def test_reference_shorthands(db: SymbolDB, method: str, expected: EdgeType) -> None:
    source = db.record_function().name("source").commit()
    target = db.record_function().name("target").commit()
    edge_id = getattr(db, method)(source, target)
    edge = db.backend.get_edge(edge_id)
    assert (edge.source_id, edge.target_id, edge.type) == (source, target, expected)


class TestReferences:
    def test_reference_to_missing_node_fails(self, sqlite_db: SymbolDB) -> None:
        source = sqlite_db.record_function().name("f").commit()
        with pytest.raises(BackendError):
            sqlite_db.record_ref_call(source, 9999)

    def test_reference_is_ambiguous(self, db: SymbolDB) -> None:
        source = db.record_function().name("f").commit()
        target = db.record_function().name("g").commit()
        edge_id = db.record_ref_call(source, target)
        db.record_reference_is_ambiguous(edge_id)

        (component,) = db.backend.list_element_components()
        assert component.element_id == edge_id
        assert component.type == ElementComponentType.IS_AMBIGUOUS
        assert component.data == ""


# ---------------------------------------------------------------------------
# Local symbols, components and files
# ---------------------------------------------------------------------------


class TestLocalSymbols:
    def test_deduplicated_by_name(self, sqlite_db: SymbolDB) -> None:
        first = sqlite_db.record_local_symbol("main<0>")
        second = sqlite_db.record_local_symbol("main<0>")
        other = sqlite_db.record_local_symbol("main<1>")
        assert first == second
        assert other != first
        assert sqlite_db.backend.stats()["local_symbols"] == 2


class TestComponentAccess:
    def test_upsert(self, sqlite_db: SymbolDB) -> None:
        field_id = sqlite_db.record_field().name("x").commit()
        sqlite_db.record_component_access(field_id, ComponentAccessType.PRIVATE)
        sqlite_db.record_component_access(field_id, ComponentAccessType.PUBLIC)
        access = sqlite_db.backend.get_component_access(field_id)
        assert access.type == ComponentAccessType.PUBLIC


class TestFileLanguage:
    def test_updates_language(self, sqlite_db: SymbolDB) -> None:
        file_id = sqlite_db.record_file().path("gen/out.inc").content("x\n").commit()
        sqlite_db.record_file_language(file_id, "cpp")
        assert sqlite_db.backend.get_file(file_id).language == "cpp"

    def test_unknown_file(self, sqlite_db: SymbolDB) -> None:
        with pytest.raises(FileRecordNotFoundError) as exc_info:
            sqlite_db.record_file_language(77, "cpp")
        assert exc_info.value.file_id == 77


# ---------------------------------------------------------------------------
# Unknown ids leave the store untouched
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "sqlite", "kuzu"])
def any_db(request: pytest.FixtureRequest) -> SymbolDB:
    database = SymbolDB.in_memory(backend=request.param)
    yield database
    database.close()


class TestUnknownIds:
    def test_location_with_unknown_symbol(self, any_db: SymbolDB) -> None:
        file_id = any_db.record_file().path("a.cpp").content("x\n").commit()
        before = any_db.backend.stats()
        with pytest.raises(ElementNotFoundError) as exc_info:
            (
                any_db.record_symbol_location()
                .symbol(9999)
                .file(file_id)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
        assert exc_info.value.element_id == 9999
        assert any_db.backend.stats() == before

    def test_location_with_unknown_file(self, any_db: SymbolDB) -> None:
        class_id = any_db.record_class().name("A").commit()
        before = any_db.backend.stats()
        with pytest.raises(FileRecordNotFoundError) as exc_info:
            (
                any_db.record_symbol_location()
                .symbol(class_id)
                .file(9999)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
        assert exc_info.value.file_id == 9999
        assert any_db.backend.stats() == before

    def test_error_with_unknown_file(self, any_db: SymbolDB) -> None:
        before = any_db.backend.stats()
        with pytest.raises(FileRecordNotFoundError):
            (
                any_db.record_error()
                .message("unexpected token")
                .file(9999)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
        assert any_db.backend.stats() == before
        assert any_db.backend.list_errors() == []

    def test_unsolved_with_unknown_symbol(self, any_db: SymbolDB) -> None:
        file_id = any_db.record_file().path("a.cpp").content("x\n").commit()
        before = any_db.backend.stats()
        with pytest.raises(ElementNotFoundError):
            (
                any_db.record_reference_to_unsolved_symbol()
                .symbol(9999)
                .reference_type(EdgeType.CALL)
                .file(file_id)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
        assert any_db.backend.stats() == before

    def test_unsolved_with_unknown_file(self, any_db: SymbolDB) -> None:
        caller = any_db.record_function().name("main").commit()
        before = any_db.backend.stats()
        with pytest.raises(FileRecordNotFoundError):
            (
                any_db.record_reference_to_unsolved_symbol()
                .symbol(caller)
                .reference_type(EdgeType.CALL)
                .file(9999)
                .start_position(1, 1)
                .end_position(1, 2)
                .commit()
            )
        assert any_db.backend.stats() == before

    def test_location_on_reference_edge(self, any_db: SymbolDB) -> None:
        file_id = any_db.record_file().path("a.cpp").content("x\n").commit()
        caller = any_db.record_function().name("main").commit()
        callee = any_db.record_function().name("run").commit()
        edge_id = any_db.record_ref_call(caller, callee)
        (
            any_db.record_reference_location()
            .symbol(edge_id)
            .file(file_id)
            .start_position(1, 1)
            .end_position(1, 2)
            .commit()
        )
        assert any_db.backend.stats()["occurrences"] == 1

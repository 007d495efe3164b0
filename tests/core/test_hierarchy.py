"""Tests for qualified names and their text encoding."""

from __future__ import annotations

import pytest

from symtrail.core.graph.hierarchy import NameElement, NameHierarchy
from symtrail.errors import (
    DecodeError,
    DeserializeError,
    EmptyNameHierarchyError,
    SerializeError,
)


# ---------------------------------------------------------------------------
# NameElement
# ---------------------------------------------------------------------------


class TestNameElement:
    def test_serialize_all_parts(self) -> None:
        element = NameElement(name="add", prefix="int", postfix="(int, int)")
        assert element.serialize() == "add\tsint\tp(int, int)"

    def test_serialize_unset_parts_as_empty(self) -> None:
        assert NameElement(name="x").serialize() == "x\ts\tp"
        assert NameElement().serialize() == "\ts\tp"

    def test_unset_equals_empty(self) -> None:
        assert NameElement(name="x") == NameElement(name="x", prefix="", postfix="")
        assert hash(NameElement(name="x")) == hash(NameElement(name="x", prefix=""))

    def test_different_parts_not_equal(self) -> None:
        assert NameElement(name="x") != NameElement(name="x", postfix="()")

    def test_deserialize(self) -> None:
        element = NameElement.deserialize("add\tsint\tp(int, int)")
        assert element.name == "add"
        assert element.prefix == "int"
        assert element.postfix == "(int, int)"

    def test_deserialize_missing_part_delimiter(self) -> None:
        with pytest.raises(DeserializeError):
            NameElement.deserialize("add\tp()")

    def test_deserialize_missing_signature_delimiter(self) -> None:
        with pytest.raises(DeserializeError):
            NameElement.deserialize("add\tsint")


# ---------------------------------------------------------------------------
# NameHierarchy construction
# ---------------------------------------------------------------------------


class TestNameHierarchyConstruction:
    def test_empty_hierarchy_rejected(self) -> None:
        with pytest.raises(EmptyNameHierarchyError):
            NameHierarchy("::", [])

    def test_single(self) -> None:
        hierarchy = NameHierarchy.single("/", "src/main.cpp")
        assert hierarchy.delimiter == "/"
        assert hierarchy.size() == 1
        assert hierarchy.elements[0].name == "src/main.cpp"

    def test_push_element(self) -> None:
        hierarchy = NameHierarchy.single("::", "ns")
        hierarchy.push_element(NameElement(name="Cls"))
        assert len(hierarchy) == 2
        assert [e.name for e in hierarchy] == ["ns", "Cls"]

    def test_extend_elements(self) -> None:
        hierarchy = NameHierarchy.single(".", "com")
        hierarchy.extend_elements([NameElement(name="example"), NameElement(name="App")])
        assert hierarchy.qualified_name() == "com.example.App"

    def test_elements_is_a_snapshot(self) -> None:
        hierarchy = NameHierarchy.single("::", "a")
        elements = hierarchy.elements
        hierarchy.push_element(NameElement(name="b"))
        assert len(elements) == 1

    def test_equality_includes_delimiter(self) -> None:
        assert NameHierarchy.single("::", "a") == NameHierarchy.single("::", "a")
        assert NameHierarchy.single("::", "a") != NameHierarchy.single(".", "a")


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestSerialize:
    def test_single_element_exact_bytes(self) -> None:
        assert NameHierarchy.single("::", "foo").serialize_name() == "::\tmfoo\ts\tp"

    def test_nested_exact_bytes(self) -> None:
        hierarchy = NameHierarchy(
            "::",
            [
                NameElement(name="ns"),
                NameElement(name="add", prefix="int", postfix="(int, int)"),
            ],
        )
        assert hierarchy.serialize_name() == "::\tmns\ts\tp\tnadd\tsint\tp(int, int)"

    def test_serialize_range_prefix(self) -> None:
        hierarchy = NameHierarchy(
            "::", [NameElement(name="a"), NameElement(name="b"), NameElement(name="c")]
        )
        assert hierarchy.serialize_range(0, 1) == "::\tma\ts\tp"
        assert hierarchy.serialize_range(0, 2) == "::\tma\ts\tp\tnb\ts\tp"
        assert hierarchy.serialize_range(1, 3) == "::\tmb\ts\tp\tnc\ts\tp"

    def test_serialize_range_empty_rejected(self) -> None:
        hierarchy = NameHierarchy.single("::", "a")
        with pytest.raises(SerializeError):
            hierarchy.serialize_range(1, 1)

    def test_serialize_range_past_end_rejected(self) -> None:
        hierarchy = NameHierarchy.single("::", "a")
        with pytest.raises(SerializeError) as exc_info:
            hierarchy.serialize_range(0, 2)
        assert exc_info.value.size == 1


class TestDeserialize:
    @pytest.mark.parametrize(
        "hierarchy",
        [
            NameHierarchy(
                ".",
                [
                    NameElement(name="App"),
                    NameElement(name="run", prefix="void", postfix="(String[])"),
                ],
            ),
            NameHierarchy("::", [NameElement(name="", prefix="", postfix="")]),
            NameHierarchy("::", [NameElement()]),
            NameHierarchy("::", [NameElement(name="f", prefix=None, postfix="()")]),
            NameHierarchy(
                "::",
                [
                    NameElement(name="std"),
                    NameElement(name="chrono"),
                    NameElement(name="duration", postfix="<long>"),
                    NameElement(name="count", prefix="long", postfix="() const"),
                ],
            ),
            NameHierarchy("/", [NameElement(name="src/main.cpp")]),
            NameHierarchy("@", [NameElement(name="unsolved symbol")]),
            NameHierarchy("", [NameElement(name="a"), NameElement(name="b")]),
        ],
        ids=[
            "signature",
            "empty-parts",
            "none-parts",
            "mixed-none",
            "four-levels",
            "file-delimiter",
            "unknown-delimiter",
            "empty-delimiter",
        ],
    )
    def test_round_trip(self, hierarchy: NameHierarchy) -> None:
        assert NameHierarchy.deserialize_name(hierarchy.serialize_name()) == hierarchy

    def test_decode_known_text(self) -> None:
        hierarchy = NameHierarchy.deserialize_name("@\tmunsolved symbol\ts\tp")
        assert hierarchy.delimiter == "@"
        assert hierarchy.qualified_name() == "unsolved symbol"

    def test_missing_meta_delimiter(self) -> None:
        with pytest.raises(DeserializeError) as exc_info:
            NameHierarchy.deserialize_name("::foo\ts\tp")
        assert exc_info.value.serialized_name == "::foo\ts\tp"

    def test_malformed_chunk(self) -> None:
        with pytest.raises(DecodeError):
            NameHierarchy.deserialize_name("::\tmfoo\ts\tp\tnbar")


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


class TestDisplay:
    def test_qualified_name(self) -> None:
        hierarchy = NameHierarchy(
            "::", [NameElement(name="a"), NameElement(name="B"), NameElement(name="c")]
        )
        assert hierarchy.qualified_name() == "a::B::c"

    def test_qualified_name_with_signature(self) -> None:
        hierarchy = NameHierarchy(
            "::",
            [
                NameElement(name="ns"),
                NameElement(name="add", prefix="int", postfix="(int, int)"),
            ],
        )
        assert hierarchy.qualified_name_with_signature() == "int ns::add(int, int)"

    def test_qualified_name_with_signature_no_prefix(self) -> None:
        hierarchy = NameHierarchy(".", [NameElement(name="f", postfix="()")])
        assert hierarchy.qualified_name_with_signature() == "f()"

"""Tests for the symbol graph data model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from symtrail.core.graph.model import (
    ComponentAccessType,
    EdgeType,
    ElementComponentType,
    NodeType,
    SourceLocation,
    SourceLocationType,
    SymbolType,
    decode_enum,
    format_modification_time,
    parse_modification_time,
    validate_range,
)
from symtrail.errors import DecodeError, InvalidSourceRangeError


# ---------------------------------------------------------------------------
# Persisted discriminants
# ---------------------------------------------------------------------------


class TestNodeType:
    def test_bit_flags(self) -> None:
        assert NodeType.SYMBOL == 1
        assert NodeType.CLASS == 128
        assert NodeType.METHOD == 8192
        assert NodeType.FILE == 1 << 18
        assert NodeType.UNION == 1 << 20

    def test_member_count(self) -> None:
        assert len(NodeType) == 21


class TestEdgeType:
    def test_values(self) -> None:
        assert EdgeType.UNDEFINED == 0
        assert EdgeType.MEMBER == 1
        assert EdgeType.CALL == 8
        assert EdgeType.INCLUDE == 256
        assert EdgeType.ANNOTATION_USAGE == 4096


class TestSmallEnums:
    def test_symbol_type(self) -> None:
        assert [int(t) for t in SymbolType] == [0, 1, 2]

    def test_source_location_type(self) -> None:
        assert SourceLocationType.TOKEN == 0
        assert SourceLocationType.INDEXER_ERROR == 6
        assert SourceLocationType.UNSOLVED == 9

    def test_component_access_type(self) -> None:
        assert ComponentAccessType.PRIVATE == 3
        assert ComponentAccessType.TYPE_PARAMETER == 6

    def test_element_component_type(self) -> None:
        assert ElementComponentType.IS_AMBIGUOUS == 1


class TestDecodeEnum:
    def test_known_value(self) -> None:
        assert decode_enum(NodeType, 128) is NodeType.CLASS

    def test_unknown_value(self) -> None:
        with pytest.raises(DecodeError):
            decode_enum(NodeType, 3)

    def test_unknown_location_type(self) -> None:
        with pytest.raises(DecodeError):
            decode_enum(SourceLocationType, 10)


# ---------------------------------------------------------------------------
# Modification time
# ---------------------------------------------------------------------------


class TestModificationTime:
    def test_format_utc(self) -> None:
        value = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_modification_time(value) == "2024-01-02 03:04:05"

    def test_format_converts_to_utc(self) -> None:
        value = datetime(2024, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert format_modification_time(value) == "2024-01-02 03:04:05"

    def test_parse(self) -> None:
        parsed = parse_modification_time("2024-01-02 03:04:05")
        assert parsed == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_parse_invalid(self) -> None:
        with pytest.raises(DecodeError):
            parse_modification_time("yesterday")


# ---------------------------------------------------------------------------
# Source ranges
# ---------------------------------------------------------------------------


class TestSourceRange:
    def test_valid_single_line(self) -> None:
        validate_range((5, 10), (5, 11))

    def test_valid_multi_line(self) -> None:
        validate_range((5, 40), (6, 1))

    def test_empty_range_rejected(self) -> None:
        with pytest.raises(InvalidSourceRangeError) as exc_info:
            validate_range((5, 10), (5, 10))
        assert exc_info.value.start == (5, 10)
        assert exc_info.value.end == (5, 10)

    def test_backwards_range_rejected(self) -> None:
        with pytest.raises(InvalidSourceRangeError):
            validate_range((6, 1), (5, 40))

    def test_source_location_validates_on_construction(self) -> None:
        with pytest.raises(InvalidSourceRangeError):
            SourceLocation(
                id=0,
                file_node_id=1,
                start_line=3,
                start_column=9,
                end_line=3,
                end_column=2,
                type=SourceLocationType.TOKEN,
            )

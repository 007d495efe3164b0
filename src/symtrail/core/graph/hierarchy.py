"""Qualified symbol names and their text encoding.

A :class:`NameHierarchy` is the identity of every graph node: the encoded
form produced by :meth:`NameHierarchy.serialize_name` is stored verbatim in
the node's ``serialized_name`` column and parsed back by the navigation
frontend, so the format below is bit-exact::

    DELIMITER \\tm NAME \\ts PREFIX \\tp POSTFIX [\\tn NAME \\ts PREFIX \\tp POSTFIX ...]

The control markers are not escaped. Element text containing ``\\tm``,
``\\tn``, ``\\ts`` or ``\\tp`` does not survive a round trip.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from symtrail.config.storage import NAME_DELIMITER_CXX
from symtrail.errors import DeserializeError, EmptyNameHierarchyError, SerializeError

META_DELIMITER = "\tm"
NAME_DELIMITER = "\tn"
PART_DELIMITER = "\ts"
SIGNATURE_DELIMITER = "\tp"

class NameElement:
    """One segment of a qualified name.

    ``prefix`` and ``postfix`` carry signature fragments (return type,
    parameter list). All three parts are optional; an unset part encodes
    exactly like an empty string and compares equal to one.
    """

    __slots__ = ("prefix", "name", "postfix")

    def __init__(
        self,
        name: str | None = None,
        prefix: str | None = None,
        postfix: str | None = None,
    ) -> None:
        self.name = name
        self.prefix = prefix
        self.postfix = postfix

    def _key(self) -> tuple[str, str, str]:
        return (self.prefix or "", self.name or "", self.postfix or "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NameElement):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (
            f"NameElement(name={self.name!r}, prefix={self.prefix!r}, "
            f"postfix={self.postfix!r})"
        )

    def serialize(self) -> str:
        """Encode this element as ``NAME\\tsPREFIX\\tpPOSTFIX``."""
        return (
            f"{self.name or ''}{PART_DELIMITER}{self.prefix or ''}"
            f"{SIGNATURE_DELIMITER}{self.postfix or ''}"
        )

    @classmethod
    def deserialize(cls, chunk: str) -> NameElement:
        """Parse one encoded element chunk.

        Raises:
            DeserializeError: If either the part or the signature marker is
                missing.
        """
        name, sep, rest = chunk.partition(PART_DELIMITER)
        if not sep:
            raise DeserializeError(f"missing part delimiter in {chunk!r}", chunk)
        # Only the first two pieces count, anything after a repeated marker is dropped.
        rest = rest.split(PART_DELIMITER, 1)[0]
        prefix, sep, postfix = rest.partition(SIGNATURE_DELIMITER)
        if not sep:
            raise DeserializeError(f"missing signature delimiter in {chunk!r}", chunk)
        postfix = postfix.split(SIGNATURE_DELIMITER, 1)[0]
        return cls(name=name, prefix=prefix, postfix=postfix)

class NameHierarchy:
    """An ordered, non-empty sequence of :class:`NameElement` plus a delimiter.

    The delimiter (``::``, ``.``, ``/``, ...) is used to join element names
    for display and is part of the encoded identity.
    """

    def __init__(
        self,
        delimiter: str = NAME_DELIMITER_CXX,
        elements: Iterable[NameElement] = (),
    ) -> None:
        self.delimiter = delimiter
        self._elements: list[NameElement] = list(elements)
        if not self._elements:
            raise EmptyNameHierarchyError()

    @classmethod
    def single(cls, delimiter: str, name: str) -> NameHierarchy:
        """Return a one-level hierarchy holding just *name*."""
        return cls(delimiter, [NameElement(name=name)])

    @property
    def elements(self) -> tuple[NameElement, ...]:
        return tuple(self._elements)

    def size(self) -> int:
        return len(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[NameElement]:
        return iter(self._elements)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NameHierarchy):
            return NotImplemented
        return self.delimiter == other.delimiter and self._elements == other._elements

    def __hash__(self) -> int:
        return hash((self.delimiter, tuple(self._elements)))

    def __repr__(self) -> str:
        return f"NameHierarchy(delimiter={self.delimiter!r}, elements={self._elements!r})"

    def push_element(self, element: NameElement) -> None:
        """Append *element* as the new innermost level."""
        self._elements.append(element)

    def extend_elements(self, elements: Iterable[NameElement]) -> None:
        self._elements.extend(elements)

    def serialize_range(self, start: int, end: int) -> str:
        """Encode elements ``[start, end)`` under this hierarchy's delimiter.

        Used to produce the identity of an ancestor level without building a
        truncated hierarchy.

        Raises:
            SerializeError: If ``start >= end`` or *end* exceeds the size.
        """
        if start < 0 or start >= end or end > len(self._elements):
            raise SerializeError(start, end, len(self._elements))
        body = NAME_DELIMITER.join(e.serialize() for e in self._elements[start:end])
        return f"{self.delimiter}{META_DELIMITER}{body}"

    def serialize_name(self) -> str:
        """Encode the whole hierarchy."""
        return self.serialize_range(0, len(self._elements))

    @classmethod
    def deserialize_name(cls, serialized_name: str) -> NameHierarchy:
        """Parse text produced by :meth:`serialize_name`.

        Raises:
            DeserializeError: If the meta marker is missing or any element
                chunk is malformed.
        """
        delimiter, sep, body = serialized_name.partition(META_DELIMITER)
        if not sep:
            raise DeserializeError(
                f"missing meta delimiter in {serialized_name!r}", serialized_name
            )
        elements = [NameElement.deserialize(chunk) for chunk in body.split(NAME_DELIMITER)]
        return cls(delimiter, elements)

    def qualified_name(self) -> str:
        """Return the element names joined by the delimiter, e.g. ``a::B::c``."""
        return self.delimiter.join(e.name or "" for e in self._elements)

    def qualified_name_with_signature(self) -> str:
        """Return :meth:`qualified_name` wrapped in the innermost signature.

        ``int`` + ``ns::add`` + ``(int, int)`` becomes ``int ns::add(int, int)``.
        """
        last = self._elements[-1]
        qualified = self.qualified_name()
        if last.prefix:
            qualified = f"{last.prefix} {qualified}"
        return f"{qualified}{last.postfix or ''}"

r"""
Unique ID
=========
Hierarchical, serializable identifier for every test container and test case.

A unique ID is an ordered sequence of (type, value) segments. The first segment
always names the owning engine:

    [engine:trellis]/[class:tests.sample.Outer]/[nested-class:Inner]/[method:works()]

Text form:
- Each segment is rendered as ``[type:value]``
- Segments are joined with ``/``
- The reserved characters ``%``, ``:``, ``[``, ``]`` and ``/`` inside a type or
  value are percent-escaped (``%25``, ``%3A``, ``%5B``, ``%5D``, ``%2F``)

Parsing is strict: unbalanced brackets, unescaped structural characters,
empty segment types and broken escapes raise MalformedIdentifierError rather
than being silently truncated.

Parsing only recovers segments. What a segment *means* is decided by
TestableResolver, using live class and method lookup.

Usage:
    from trellis.discovery.unique_id import UniqueId

    engine_id = UniqueId.for_engine("trellis")
    class_id = engine_id.append("class", "tests.sample.Outer")
    text = class_id.to_string()
    assert UniqueId.parse(text) == class_id
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

ENGINE_SEGMENT_TYPE = "engine"

_RESERVED_RE = re.compile(r"[%:\[\]/]")
_ESCAPE_RE = re.compile(r"%([0-9A-Fa-f]{2})")


class MalformedIdentifierError(ValueError):
    """Raised when a serialized unique ID cannot be parsed."""

    def __init__(self, text: str, reason: str, position: Optional[int] = None):
        self.text = text
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Malformed unique ID {text!r}{where}: {reason}")


def _escape(raw: str) -> str:
    return _RESERVED_RE.sub(lambda m: "%{:02X}".format(ord(m.group())), raw)


def _unescape(escaped: str, text: str, offset: int) -> str:
    for index, char in enumerate(escaped):
        if char == "%" and not _ESCAPE_RE.match(escaped, index):
            raise MalformedIdentifierError(text, "invalid percent escape", offset + index)
    return _ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), escaped)


@dataclass(frozen=True)
class Segment:
    """One (type, value) step of a unique ID."""

    type: str
    value: str

    def to_string(self) -> str:
        return f"[{_escape(self.type)}:{_escape(self.value)}]"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class UniqueId:
    """
    Immutable, ordered sequence of segments.

    Two unique IDs are equal iff their segment sequences are equal element-wise.
    """

    segments: Tuple[Segment, ...]

    def __post_init__(self):
        if not self.segments:
            raise ValueError("A unique ID needs at least one segment")
        object.__setattr__(self, "segments", tuple(self.segments))

    @classmethod
    def for_engine(cls, engine_id: str) -> "UniqueId":
        """
        Build the root unique ID of an engine.

        Example:
            UniqueId.for_engine("trellis") -> [engine:trellis]
        """
        if not engine_id:
            raise ValueError("Engine ID must not be empty")
        return cls.root(ENGINE_SEGMENT_TYPE, engine_id)

    @classmethod
    def root(cls, segment_type: str, value: str) -> "UniqueId":
        return cls((Segment(segment_type, value),))

    @classmethod
    def parse(cls, text: str) -> "UniqueId":
        """Parse the text form produced by to_string()."""
        return cls(tuple(Segment(t, v) for t, v in parse_segments(text)))

    @classmethod
    def coerce(cls, value: Union["UniqueId", str]) -> "UniqueId":
        """Return ``value`` as a UniqueId, parsing it if it is a string."""
        if isinstance(value, UniqueId):
            return value
        return cls.parse(value)

    def append(self, segment_type: str, value: str) -> "UniqueId":
        """Return a new, longer unique ID. The receiver is not modified."""
        if not segment_type:
            raise ValueError("Segment type must not be empty")
        return UniqueId(self.segments + (Segment(segment_type, value),))

    @property
    def engine_id(self) -> Optional[str]:
        """Value of the engine segment, or None if the ID is not engine-rooted."""
        first = self.segments[0]
        return first.value if first.type == ENGINE_SEGMENT_TYPE else None

    @property
    def last_segment(self) -> Segment:
        return self.segments[-1]

    def remove_last_segment(self) -> "UniqueId":
        if len(self.segments) == 1:
            raise ValueError("Cannot remove the last remaining segment")
        return UniqueId(self.segments[:-1])

    def has_prefix(self, prefix: "UniqueId") -> bool:
        size = len(prefix.segments)
        return self.segments[:size] == prefix.segments

    def to_string(self) -> str:
        return "/".join(segment.to_string() for segment in self.segments)

    def __str__(self) -> str:
        return self.to_string()

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)


def parse_segments(text: str) -> List[Tuple[str, str]]:
    """
    Parse a serialized unique ID into its (type, value) pairs.

    Raises:
        MalformedIdentifierError: on empty, unbalanced or unescaped input
    """
    if not isinstance(text, str):
        raise TypeError(f"Unique ID text must be a string, got {type(text).__name__}")
    if not text:
        raise MalformedIdentifierError(text, "empty input")

    segments: List[Tuple[str, str]] = []
    position = 0
    length = len(text)

    while True:
        if position >= length or text[position] != "[":
            raise MalformedIdentifierError(text, "expected '['", position)

        type_start = position + 1
        colon = type_start
        while colon < length and text[colon] not in ":[]/":
            colon += 1
        if colon >= length or text[colon] != ":":
            raise MalformedIdentifierError(text, "expected ':' after segment type", colon)
        if colon == type_start:
            raise MalformedIdentifierError(text, "empty segment type", colon)

        value_start = colon + 1
        close = value_start
        while close < length and text[close] not in ":[]/":
            close += 1
        if close >= length or text[close] != "]":
            raise MalformedIdentifierError(text, "expected ']' after segment value", close)

        segments.append((
            _unescape(text[type_start:colon], text, type_start),
            _unescape(text[value_start:close], text, value_start),
        ))

        position = close + 1
        if position == length:
            return segments
        if text[position] != "/":
            raise MalformedIdentifierError(text, "expected '/' between segments", position)
        position += 1

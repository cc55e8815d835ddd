"""Pattern-based scanning of JSON-ish fragments in an incomplete buffer.

A model response is not valid JSON until the stream ends, so records are
recognised by a run of adjacent ``"key": value`` fragments instead of by
parsing. Enclosing braces and brackets never need to be balanced or closed;
only the fragments that make up one record have to be complete.

Array values are captured raw first and their items pulled out with a second
string-literal (or integer) scan, which keeps nested quotes and brackets from
confusing the outer pattern.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from app.modules.questions.schema import CategorySchema, FieldKind, FieldRole, FieldSpec

# Body of a JSON string literal, escapes included
_STRING_BODY = r'(?:[^"\\]|\\.)*'
# Body of an array whose string items may themselves contain brackets
_ARRAY_BODY = rf'(?:[^\]"]|"{_STRING_BODY}")*'
# Whitespace and commas tolerated between the fragments of one record
_SEPARATOR = r"[\s,]*"
# A scalar is only trusted once something follows it, so a number still
# being streamed ("1" of "12") is not read early
_SCALAR_END = r"(?=\s*[,}\]])"
# Once the response is complete, the end of the text also closes a scalar
_SCALAR_END_FINAL = r"(?=\s*(?:[,}\]]|\Z))"
# How far in front of a match leading optional fields are searched for
LOOKBACK_CHARS = 500

_STRING_ITEM = re.compile(rf'"({_STRING_BODY})"')
_INTEGER_ITEM = re.compile(r"-?\d+")


def _value_pattern(spec: FieldSpec, scalar_end: str = _SCALAR_END) -> str:
    g = spec.name
    if spec.kind is FieldKind.STRING:
        return rf'"(?P<{g}>{_STRING_BODY})"'
    if spec.kind is FieldKind.INTEGER:
        return rf'"?(?P<{g}>-?\d+)"?{scalar_end}'
    if spec.kind is FieldKind.BOOLEAN:
        return rf"[\"']?(?P<{g}>[Tt]rue|[Ff]alse)[\"']?{scalar_end}"
    return rf"\[(?P<{g}>{_ARRAY_BODY})\]"


def _fragment_pattern(spec: FieldSpec, scalar_end: str = _SCALAR_END) -> str:
    return rf'"{re.escape(spec.name)}"\s*:\s*{_value_pattern(spec, scalar_end)}'


def split_leading(
    fields: tuple[FieldSpec, ...]
) -> tuple[tuple[FieldSpec, ...], tuple[FieldSpec, ...]]:
    """Split off the optional fields in front of the first required one."""
    lead = 0
    while lead < len(fields) and fields[lead].role is FieldRole.OPTIONAL:
        lead += 1
    return fields[:lead], fields[lead:]


def compile_record_pattern(
    schema: CategorySchema, *, final: bool = False
) -> re.Pattern[str]:
    """Pattern for the run of fields starting at the first required one.

    Leading optional fields are left out so every match begins with a literal
    key; they are recovered by ``compile_lookback_pattern``.
    """
    scalar_end = _SCALAR_END_FINAL if final else _SCALAR_END
    _, anchored = split_leading(schema.scan_fields)
    parts: list[str] = []
    for i, spec in enumerate(anchored):
        piece = _fragment_pattern(spec, scalar_end)
        if i > 0:
            piece = _SEPARATOR + piece
        if spec.role is FieldRole.OPTIONAL:
            piece = f"(?:{piece})?"
        parts.append(piece)
    return re.compile("".join(parts))


def compile_lookback_pattern(schema: CategorySchema) -> Optional[re.Pattern[str]]:
    """Pattern for leading optional fields directly in front of a match."""
    leading, _ = split_leading(schema.scan_fields)
    if not leading:
        return None
    body = _SEPARATOR.join(_fragment_pattern(spec) for spec in leading)
    return re.compile(rf"{body}{_SEPARATOR}\Z")


def unescape(raw: str) -> str:
    """Decode JSON escapes in a string-literal body; keep raw text if invalid."""
    try:
        return json.loads(f'"{raw}"', strict=False)
    except ValueError:
        return raw


def string_items(raw: str) -> list[str]:
    items = (unescape(m.group(1)).strip() for m in _STRING_ITEM.finditer(raw))
    return [item for item in items if item]


def integer_items(raw: str) -> list[int]:
    return [int(m.group(0)) for m in _INTEGER_ITEM.finditer(raw)]


def _convert(spec: FieldSpec, raw: Optional[str]) -> Any:
    if raw is None:
        return None
    if spec.kind is FieldKind.STRING:
        return unescape(raw).strip()
    if spec.kind is FieldKind.INTEGER:
        return int(raw)
    if spec.kind is FieldKind.BOOLEAN:
        return raw.lower() == "true"
    if spec.kind is FieldKind.STRING_LIST:
        return string_items(raw)
    return integer_items(raw)


@dataclass(frozen=True)
class Fragment:
    """Typed values of one matched record; absent optional fields are None."""

    values: dict[str, Any]
    start: int
    end: int


class TolerantScanner:
    """Finds every complete-enough record of one category in a buffer.

    With ``final=True`` the buffer is taken to be the whole response, so a
    scalar cut off by the end of the text is accepted as it stands.
    """

    def __init__(self, schema: CategorySchema, *, final: bool = False) -> None:
        self.schema = schema
        self.final = final
        self.pattern = compile_record_pattern(schema, final=final)
        self.lookback = compile_lookback_pattern(schema)
        leading, anchored = split_leading(schema.scan_fields)
        self._leading = leading
        self._anchor = f'"{anchored[0].name}"'
        self._anchor_key = re.compile(rf"{re.escape(self._anchor)}(?=\s*(?::|\Z))")

    def scan(self, buffer: str, pos: int = 0) -> Iterator[Fragment]:
        """Yield fragments in buffer order starting at ``pos``.

        Matches are non-overlapping and begin with the first required key, so
        resuming at the end of an earlier match finds the same fragments a
        scan from the beginning would. Leading optional fields are read from
        at most ``LOOKBACK_CHARS`` in front of the match.
        """
        for match in self.pattern.finditer(buffer, pos):
            values = {
                spec.name: _convert(spec, match.group(spec.name))
                for spec in self.schema.scan_fields
                if spec not in self._leading
            }
            values.update(self._look_back(buffer, match.start()))
            yield Fragment(values=values, start=match.start(), end=match.end())

    def _look_back(self, buffer: str, start: int) -> dict[str, Any]:
        found: dict[str, Any] = {spec.name: None for spec in self._leading}
        if self.lookback is None:
            return found
        window = buffer[max(0, start - LOOKBACK_CHARS):start]
        match = self.lookback.search(window)
        if match:
            for spec in self._leading:
                found[spec.name] = _convert(spec, match.group(spec.name))
        return found

    def restart_point(self, buffer: str, pos: int = 0) -> int:
        """Earliest position at or after ``pos`` where a new match could begin.

        Every match starts at its first required key, and in well-formed JSON
        a record cannot contain that key again, so only the last occurrence
        (or a partial key at the very end) can still grow into a match.
        """
        last = None
        for last in self._anchor_key.finditer(buffer, pos):
            pass
        if last is not None:
            return last.start()
        return max(pos, len(buffer) - len(self._anchor) + 1)

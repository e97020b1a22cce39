"""CSV rendering for record exports.

Rows are joined with a bare newline and the document ends without a trailing
line terminator, which `csv.writer` cannot produce, so cells are escaped here.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

_NEEDS_QUOTING = (",", '"', "\n", "\r")


@dataclass(frozen=True, slots=True)
class ExportField:
    """One output column: a header label and either a column name or an extractor."""

    label: str
    value: str | Callable[[Mapping[str, Any]], Any]

    def extract(self, record: Mapping[str, Any]) -> Any:
        if callable(self.value):
            return self.value(record)
        return record.get(self.value)


def escape_cell(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(marker in text for marker in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(records: Iterable[Mapping[str, Any]], fields: Sequence[ExportField]) -> str:
    """Render records as CSV; an empty record list still yields the header row."""
    lines = [",".join(escape_cell(field.label) for field in fields)]
    for record in records:
        lines.append(",".join(escape_cell(field.extract(record)) for field in fields))
    return "\n".join(lines)

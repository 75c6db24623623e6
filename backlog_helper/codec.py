"""Row codec between records and spreadsheet rows.

A row is an ordered list of nullable cell values, one per header of the
record's sheet. Reading is lenient about blank or malformed optional
cells; a missing or invalid mandatory cell fails the whole row with a
RowParseError naming the column.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from functools import partial
from typing import Any, Callable, Optional, Sequence, Union

from . import enums
from .records import (
    ENUM,
    ID,
    LAYOUTS,
    TIMESTAMP,
    Column,
    Layout,
    RecordKind,
    kind_of,
    utc_now,
)

_log = logging.getLogger("backlog.codec")


class RowParseError(ValueError):
    """Raised when a row cannot be turned into a record."""
    def __init__(self, column: str, message: str):
        super().__init__(message)
        self.column = column


# ── Cell readers ──

def cell_text(value: Any) -> Optional[str]:
    """Trimmed text of a cell, or None when absent or blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def cell_enum(enum_cls, value: Any):
    return enums.try_parse(enum_cls, cell_text(value))


def cell_timestamp(value: Any) -> Optional[datetime]:
    """Read a timestamp cell as an aware UTC datetime.

    Accepts a native datetime cell (naive values are taken as UTC), a
    date cell, or ISO-8601 text. Anything else yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=timezone.utc)
    text = cell_text(value)
    if text is None:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        _log.debug("unparseable timestamp %r", text)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ── Serialize / deserialize ──

def _cell_for(column: Column, value: Any) -> Any:
    if column.kind == TIMESTAMP:
        return value.isoformat() if value is not None else None
    if column.kind == ENUM:
        return value.value if value is not None else None
    if column.kind == ID or column.required:
        return value
    return value if value else None


def serialize_row(columns: Sequence[Column], record) -> list[Any]:
    return [_cell_for(column, getattr(record, column.attr)) for column in columns]


def deserialize_row(layout: Layout, row: Sequence[Any]):
    columns = layout.columns
    cells = list(row[: len(columns)])
    cells.extend([None] * (len(columns) - len(cells)))

    now = utc_now()
    values: dict[str, Any] = {}
    for column, raw in zip(columns, cells):
        if column.kind == TIMESTAMP:
            values[column.attr] = cell_timestamp(raw) or now
            continue
        if column.kind == ENUM:
            value = cell_enum(column.enum, raw)
            if value is None and column.required:
                raise RowParseError(
                    column.header,
                    f"Invalid or missing {column.header} in {layout.label} row: {raw!r}",
                )
        else:
            value = cell_text(raw)
            if value is None and column.required:
                raise RowParseError(column.header, f"Missing {column.header} in {layout.label} row")
        values[column.attr] = value
    return layout.record_type(**values)


# ── Dispatch ──

@dataclass(frozen=True)
class RowCodec:
    kind: RecordKind
    sheet_name: str
    headers: tuple[str, ...]
    serialize: Callable[[Any], list[Any]]
    deserialize: Callable[[Sequence[Any]], Any]


def _build_codec(kind: RecordKind) -> RowCodec:
    layout = LAYOUTS[kind]
    return RowCodec(
        kind=kind,
        sheet_name=layout.sheet_name,
        headers=tuple(layout.headers),
        serialize=partial(serialize_row, layout.columns),
        deserialize=partial(deserialize_row, layout),
    )


CODECS: dict[RecordKind, RowCodec] = {kind: _build_codec(kind) for kind in RecordKind}


def codec_for(target: Union[RecordKind, Any]) -> RowCodec:
    """Return the codec for a RecordKind or for a record instance."""
    kind = target if isinstance(target, RecordKind) else kind_of(target)
    return CODECS[kind]


def serialize(record) -> list[Any]:
    return codec_for(record).serialize(record)


def deserialize(kind: RecordKind, row: Sequence[Any]):
    return CODECS[kind].deserialize(row)

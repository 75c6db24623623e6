"""Table output for record listings."""

from __future__ import annotations

from typing import Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .records import ENUM, TIMESTAMP, RecordKind, layout_for

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def display_values(kind: RecordKind, record) -> list[str]:
    """Row of display strings in header order; absent values become ''.

    Timestamps are stored in UTC and shown in local time.
    """
    values = []
    for column in layout_for(kind).columns:
        value = getattr(record, column.attr)
        if value is None:
            values.append("")
        elif column.kind == TIMESTAMP:
            values.append(value.astimezone().strftime(TIMESTAMP_FORMAT))
        elif column.kind == ENUM:
            values.append(value.value)
        else:
            values.append(str(value))
    return values


def build_table(kind: RecordKind, records: Sequence) -> Table:
    layout = layout_for(kind)
    table = Table(box=box.SIMPLE_HEAD, show_lines=False)
    for header in layout.headers:
        table.add_column(header, overflow="fold")
    for record in records:
        table.add_row(*(Text(value) for value in display_values(kind, record)))
    return table


def print_records(console: Console, kind: RecordKind, records: Sequence) -> None:
    if not records:
        console.print("No items found.")
        return
    console.print(build_table(kind, records))
